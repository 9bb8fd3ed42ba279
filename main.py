import logging
import os
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from schemas import User, UserList
from uploads import avatar_type, save_avatar

logger = logging.getLogger(__name__)

# Settings
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
NOTE_CLEAN = "clean"

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,4}$")
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
INT64_MAX = 2 ** 63 - 1


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_user_indexes(database.db[database.USER_COLLECTION])
    yield
    if database.client is not None:
        database.client.close()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": message})


# Dependencies

def get_user_collection() -> Collection:
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return database.db[database.USER_COLLECTION]


def get_upload_dir() -> str:
    return UPLOAD_DIR


# Helpers

def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


def validate_age(age: int) -> bool:
    return 1 <= age <= 100


def bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


def parse_int(raw: str) -> Optional[int]:
    """Plain ASCII decimal within int64, None for anything else."""
    if INTEGER_PATTERN.fullmatch(raw) is None:
        return None
    value = int(raw)
    if not -INT64_MAX - 1 <= value <= INT64_MAX:
        return None
    return value


def parse_age(raw: str) -> int:
    age = parse_int(raw)
    if age is None:
        raise bad_request("invalid age")
    if not validate_age(age):
        raise bad_request("please enter an age between 1 and 100")
    return age


def parse_user_id(user_id: str) -> ObjectId:
    if not user_id:
        raise bad_request("user id is required")
    if not ObjectId.is_valid(user_id):
        raise bad_request("invalid user id format")
    return ObjectId(user_id)


def parse_positive_int(raw: str, name: str) -> int:
    value = parse_int(raw)
    if value is None:
        raise bad_request(f"invalid {name} value")
    if value <= 0:
        raise bad_request("limit and page must be positive")
    return value


def check_avatar(avatar: UploadFile) -> str:
    ext = avatar_type(avatar.filename)
    if ext is None:
        raise bad_request("invalid file type, only JPG and PNG are allowed")
    return ext


def store_avatar(avatar: UploadFile, upload_dir: str) -> None:
    try:
        save_avatar(avatar, upload_dir)
    except OSError as e:
        logger.exception("Failed to save avatar %s", avatar.filename)
        raise HTTPException(status_code=500, detail=f"unable to save avatar: {e.strerror or e}")


def ensure_email_available(
    collection: Collection, email: str, exclude_id: Optional[ObjectId] = None
) -> None:
    try:
        taken = database.email_exists(collection, email, exclude_id=exclude_id)
    except PyMongoError:
        logger.exception("Email uniqueness check failed")
        raise HTTPException(status_code=500, detail="error checking email uniqueness")
    if taken:
        raise bad_request("email already exists")


def has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def current_year() -> int:
    return datetime.now(timezone.utc).year


# User routes

@app.post(
    "/user",
    response_model=User,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    name: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    collection: Collection = Depends(get_user_collection),
    upload_dir: str = Depends(get_upload_dir),
):
    user_doc: Dict[str, Any] = {}
    if age:
        parsed_age = parse_age(age)
        user_doc["age"] = parsed_age
        user_doc["year_of_birth"] = current_year() - parsed_age

    if not name or not email or not user_doc.get("age"):
        raise bad_request("please fill in all required fields")
    user_doc["name"] = name
    user_doc["email"] = email
    if note:
        user_doc["note"] = note

    if not is_valid_email(email):
        raise bad_request("invalid email format")

    ensure_email_available(collection, email)

    if not has_file(avatar):
        raise bad_request("avatar file is required")
    user_doc["avatar_name"] = os.path.basename(avatar.filename)
    user_doc["avatar_type"] = check_avatar(avatar)

    store_avatar(avatar, upload_dir)

    try:
        created = database.create_document(collection, user_doc)
    except DuplicateKeyError:
        raise bad_request("email already exists")
    except PyMongoError:
        logger.exception("Failed to insert user %s", email)
        raise HTTPException(status_code=500, detail="unable to create user")

    logger.info("Created user %s", created["_id"])
    return User.from_document(created)


@app.put("/user/{user_id}", response_model=User, response_model_exclude_none=True)
def update_user(
    user_id: str,
    name: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    collection: Collection = Depends(get_user_collection),
    upload_dir: str = Depends(get_upload_dir),
):
    object_id = parse_user_id(user_id)

    try:
        existing = database.get_document(collection, object_id)
    except PyMongoError:
        logger.exception("Failed to load user %s", user_id)
        raise HTTPException(status_code=500, detail="error retrieving user")
    if existing is None:
        raise bad_request("user not found")

    changes: Dict[str, Any] = {}
    remove: List[str] = []

    if name:
        changes["name"] = name

    if age:
        parsed_age = parse_age(age)
        changes["age"] = parsed_age
        changes["year_of_birth"] = current_year() - parsed_age

    if note:
        if note == NOTE_CLEAN:
            remove.append("note")
        else:
            changes["note"] = note

    if email:
        if not is_valid_email(email):
            raise bad_request("invalid email format")
        ensure_email_available(collection, email, exclude_id=object_id)
        changes["email"] = email

    if has_file(avatar):
        changes["avatar_type"] = check_avatar(avatar)
        changes["avatar_name"] = os.path.basename(avatar.filename)
        store_avatar(avatar, upload_dir)

    changes["updated_at"] = datetime.now(timezone.utc)

    try:
        updated = database.update_document(collection, object_id, changes, remove=remove)
    except DuplicateKeyError:
        raise bad_request("email already exists")
    except PyMongoError:
        logger.exception("Failed to update user %s", user_id)
        raise HTTPException(status_code=500, detail="unable to update user")
    if updated is None:
        raise bad_request("user not found")

    logger.info("Updated user %s", user_id)
    return User.from_document(updated)


@app.get("/users", response_model=UserList, response_model_exclude_none=True)
def list_users(
    limit: str = "10",
    page: str = "1",
    collection: Collection = Depends(get_user_collection),
):
    limit_value = parse_positive_int(limit, "limit")
    page_value = parse_positive_int(page, "page")
    skip = (page_value - 1) * limit_value
    if skip > INT64_MAX:
        raise bad_request("invalid page value")

    try:
        documents = database.get_documents(collection, skip=skip, limit=limit_value)
    except PyMongoError:
        logger.exception("Failed to list users")
        raise HTTPException(status_code=500, detail="unable to retrieve users")

    try:
        total = database.count_documents(collection)
    except PyMongoError:
        logger.exception("Failed to count users")
        raise HTTPException(status_code=500, detail="unable to count users")

    return UserList(count=total, data=[User.from_document(doc) for doc in documents])


@app.get("/user/{user_id}", response_model=User, response_model_exclude_none=True)
def get_user(user_id: str, collection: Collection = Depends(get_user_collection)):
    object_id = parse_user_id(user_id)
    try:
        document = database.get_document(collection, object_id)
    except PyMongoError:
        logger.exception("Failed to load user %s", user_id)
        raise HTTPException(status_code=500, detail="unable to retrieve user")
    if document is None:
        raise HTTPException(status_code=404, detail="user not found")
    return User.from_document(document)


@app.delete("/user/{user_id}")
def delete_user(user_id: str, collection: Collection = Depends(get_user_collection)):
    object_id = parse_user_id(user_id)
    try:
        deleted = database.delete_document(collection, object_id)
    except PyMongoError:
        logger.exception("Failed to delete user %s", user_id)
        raise HTTPException(status_code=500, detail="unable to delete user")
    if deleted == 0:
        raise HTTPException(status_code=404, detail="user not found")
    logger.info("Deleted user %s", user_id)
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", 6000))
    uvicorn.run(app, host="0.0.0.0", port=port)
