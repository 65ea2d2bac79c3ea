import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import validation
from database import normalize_email, sanitize, to_obj_id
from errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ratings import aggregate_ratings, group_by_store
from schemas import (
    AdminStoreSortField,
    CreateStoreRequest,
    CreateUserRequest,
    Rating as RatingSchema,
    RatingSortField,
    RegisterRequest,
    Role,
    SortOrder,
    Store as StoreSchema,
    User as UserSchema,
    UserSortField,
    UserStoreSortField,
    utcnow,
)
from security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


# Helpers

def contains_filter(**fields: Optional[str]) -> Dict[str, Any]:
    """Case-insensitive substring match on every non-empty field."""
    q: Dict[str, Any] = {}
    for field, text in fields.items():
        if text:
            q[field] = re.compile(re.escape(text), re.IGNORECASE)
    return q


def sort_spec(field, order: SortOrder) -> List[Tuple[str, int]]:
    direction = DESCENDING if order == SortOrder.desc else ASCENDING
    # _id keeps ties in insertion order
    return [(field.value, direction), ("_id", ASCENDING)]


def owned_store(db: Database, owner_id: str) -> Optional[Dict[str, Any]]:
    """The earliest-created store for an owner, if any."""
    cursor = db["store"].find({"owner_id": owner_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)]).limit(1)
    return next(iter(cursor), None)


def _rating_value(value) -> int:
    try:
        return validation.check_rating_value(value)
    except ValueError as exc:
        raise ValidationError(str(exc))


class UserService:
    def __init__(self, db: Database):
        self.db = db

    def _insert(self, name: str, email: str, address: str, password: str, role: Role) -> Dict[str, Any]:
        email = normalize_email(email)
        if self.db["user"].find_one({"email": email}):
            raise ConflictError("User with this email already exists")
        user_doc = UserSchema(
            name=name,
            email=email,
            address=address,
            password_hash=hash_password(password),
            role=role,
        ).model_dump()
        try:
            res = self.db["user"].insert_one(user_doc)
        except DuplicateKeyError:
            raise ConflictError("User with this email already exists")
        user_doc["_id"] = res.inserted_id
        logger.info("Created %s user %s", role.value, res.inserted_id)
        return sanitize(user_doc)

    def register(self, payload: RegisterRequest) -> Dict[str, Any]:
        """Self-registration always yields a NORMAL_USER; returns the profile with a token."""
        user = self._insert(payload.name, payload.email, payload.address, payload.password, Role.NORMAL_USER)
        return {**user, "token": create_access_token(user["id"], user["role"])}

    def create_user(self, payload: CreateUserRequest) -> Dict[str, Any]:
        return self._insert(payload.name, payload.email, payload.address, payload.password, payload.role)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        user = self.db["user"].find_one({"email": normalize_email(email)})
        if not user or not verify_password(password, user.get("password_hash", "")):
            logger.warning("Failed login for %s", email)
            raise AuthenticationError("Invalid email or password")
        profile = sanitize(user)
        return {**profile, "token": create_access_token(profile["id"], profile["role"])}

    def get_profile(self, user_id: str) -> Dict[str, Any]:
        user = self.db["user"].find_one({"_id": to_obj_id(user_id)})
        if not user:
            raise NotFoundError("User not found")
        return sanitize(user)

    def update_password(self, user_id: str, old_password: str, new_password: str) -> None:
        user = self.db["user"].find_one({"_id": to_obj_id(user_id)})
        if not user or not verify_password(old_password, user.get("password_hash", "")):
            raise AuthenticationError("Invalid old password")
        self.db["user"].update_one(
            {"_id": user["_id"]},
            {"$set": {"password_hash": hash_password(new_password), "updated_at": utcnow()}},
        )
        logger.info("Password updated for user %s", user_id)

    def list_users(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        role: Optional[Role] = None,
        sort_by: UserSortField = UserSortField.name,
        order: SortOrder = SortOrder.asc,
    ) -> List[Dict[str, Any]]:
        q = contains_filter(name=name, email=email, address=address)
        if role:
            q["role"] = role.value
        users = [sanitize(u) for u in self.db["user"].find(q).sort(sort_spec(sort_by, order))]

        owner_ids = [u["id"] for u in users if u["role"] == Role.STORE_OWNER.value]
        if not owner_ids:
            return users

        stores_by_owner: Dict[str, Dict[str, Any]] = {}
        cursor = self.db["store"].find({"owner_id": {"$in": owner_ids}}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        for st in cursor:
            stores_by_owner.setdefault(st["owner_id"], st)
        store_ids = [str(st["_id"]) for st in stores_by_owner.values()]
        ratings = group_by_store(self.db["rating"].find({"store_id": {"$in": store_ids}}))

        for u in users:
            st = stores_by_owner.get(u["id"])
            if not st:
                continue
            sid = str(st["_id"])
            u["store"] = {"id": sid, "name": st["name"]}
            u["store_average_rating"] = aggregate_ratings(ratings.get(sid, [])).average
        return users

    def seed_admin(self, name: str, email: str, password: str) -> bool:
        """Create the first SYSTEM_ADMIN unless that email is already taken."""
        if self.db["user"].find_one({"email": normalize_email(email)}):
            return False
        self._insert(
            validation.check_name(name),
            email,
            "System administrator",
            validation.check_password(password),
            Role.SYSTEM_ADMIN,
        )
        return True


class StoreService:
    def __init__(self, db: Database):
        self.db = db

    def create_store(self, payload: CreateStoreRequest) -> Dict[str, Any]:
        email = normalize_email(payload.email)
        if self.db["store"].find_one({"email": email}):
            raise ConflictError("Store with this email already exists")
        if self.db["store"].find_one({"name": payload.name}):
            raise ConflictError("Store with this name already exists")

        if payload.owner_id:
            owner = self.db["user"].find_one({"_id": to_obj_id(payload.owner_id, "owner id")})
            if not owner or owner.get("role") != Role.STORE_OWNER.value:
                raise ValidationError("Provided owner ID is not a valid Store Owner")
            if owned_store(self.db, payload.owner_id):
                raise ConflictError("This Store Owner already owns a store")

        store_doc = StoreSchema(
            name=payload.name,
            email=email,
            address=payload.address,
            owner_id=payload.owner_id or None,
        ).model_dump()
        try:
            res = self.db["store"].insert_one(store_doc)
        except DuplicateKeyError:
            raise ConflictError("Store with this name or email already exists")
        store_doc["_id"] = res.inserted_id
        logger.info("Created store %s (%s)", res.inserted_id, payload.name)
        return sanitize(store_doc)

    def _ratings_for(self, stores: List[Dict[str, Any]]):
        return group_by_store(self.db["rating"].find({"store_id": {"$in": [s["id"] for s in stores]}}))

    def list_stores_admin(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        sort_by: AdminStoreSortField = AdminStoreSortField.name,
        order: SortOrder = SortOrder.asc,
    ) -> List[Dict[str, Any]]:
        q = contains_filter(name=name, email=email, address=address)
        stores = [sanitize(s) for s in self.db["store"].find(q).sort(sort_spec(sort_by, order))]
        ratings = self._ratings_for(stores)

        owner_oids = [to_obj_id(s["owner_id"]) for s in stores if s.get("owner_id")]
        owners = {str(u["_id"]): u for u in self.db["user"].find({"_id": {"$in": owner_oids}})} if owner_oids else {}

        for s in stores:
            summary = aggregate_ratings(ratings.get(s["id"], []))
            s["average_rating"] = summary.average
            s["rating_count"] = summary.count
            owner = owners.get(s.get("owner_id"))
            s["owner"] = {"id": str(owner["_id"]), "name": owner["name"], "email": owner["email"]} if owner else None
        return stores

    def list_stores_for_user(
        self,
        caller_id: str,
        name: Optional[str] = None,
        address: Optional[str] = None,
        sort_by: UserStoreSortField = UserStoreSortField.name,
        order: SortOrder = SortOrder.asc,
    ) -> List[Dict[str, Any]]:
        q = contains_filter(name=name, address=address)
        stores = [sanitize(s) for s in self.db["store"].find(q).sort(sort_spec(sort_by, order))]
        ratings = self._ratings_for(stores)

        result = []
        for s in stores:
            summary = aggregate_ratings(ratings.get(s["id"], []), caller_id=caller_id)
            result.append({
                "id": s["id"],
                "name": s["name"],
                "address": s["address"],
                "overall_rating": summary.average,
                "rating_count": summary.count,
                "user_submitted_rating": summary.caller_value,
            })
        return result

    def owner_dashboard(self, owner_id: str) -> Dict[str, Any]:
        store = owned_store(self.db, owner_id)
        if not store:
            raise NotFoundError("No store found for this owner.")
        store_id = str(store["_id"])
        ratings = list(self.db["rating"].find({"store_id": store_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)]))
        summary = aggregate_ratings(ratings)

        user_oids = [to_obj_id(r["user_id"]) for r in ratings]
        users = {str(u["_id"]): u for u in self.db["user"].find({"_id": {"$in": user_oids}})} if user_oids else {}
        raters = []
        for r in ratings:
            u = users.get(r["user_id"])
            if not u:
                continue
            raters.append({
                "user_id": r["user_id"],
                "user_name": u["name"],
                "user_email": u["email"],
                "rating_value": r["value"],
            })

        return {
            "store_id": store_id,
            "store_name": store["name"],
            "average_rating": summary.average,
            "rating_count": summary.count,
            "users_who_rated": raters,
        }


class RatingService:
    def __init__(self, db: Database):
        self.db = db

    def _require_store(self, store_id: str) -> None:
        if not self.db["store"].find_one({"_id": to_obj_id(store_id, "store id")}, {"_id": 1}):
            raise NotFoundError("Store not found")

    def _existing(self, user_id: str, store_id: str) -> Optional[Dict[str, Any]]:
        return self.db["rating"].find_one({"user_id": user_id, "store_id": store_id})

    def submit(self, user_id: str, store_id: str, value: int) -> Dict[str, Any]:
        value = _rating_value(value)
        self._require_store(store_id)
        if self._existing(user_id, store_id):
            raise ConflictError("You have already submitted a rating for this store. Please modify it instead.")
        doc = RatingSchema(user_id=user_id, store_id=store_id, value=value).model_dump()
        try:
            res = self.db["rating"].insert_one(doc)
        except DuplicateKeyError:
            # lost a race with a concurrent submit for the same pair
            raise ConflictError("You have already submitted a rating for this store. Please modify it instead.")
        doc["_id"] = res.inserted_id
        logger.info("User %s rated store %s with %s", user_id, store_id, value)
        return sanitize(doc)

    def modify(self, user_id: str, store_id: str, value: int) -> Dict[str, Any]:
        value = _rating_value(value)
        res = self.db["rating"].update_one(
            {"user_id": user_id, "store_id": store_id},
            {"$set": {"value": value, "updated_at": utcnow()}},
        )
        if res.matched_count == 0:
            raise NotFoundError("No rating found for this store. Submit a rating first.")
        logger.info("User %s changed rating of store %s to %s", user_id, store_id, value)
        return sanitize(self.db["rating"].find_one({"user_id": user_id, "store_id": store_id}))

    def list_ratings(
        self,
        sort_by: RatingSortField = RatingSortField.created_at,
        order: SortOrder = SortOrder.asc,
    ) -> List[Dict[str, Any]]:
        ratings = [sanitize(r) for r in self.db["rating"].find({}).sort(sort_spec(sort_by, order))]
        user_oids = {to_obj_id(r["user_id"]) for r in ratings}
        store_oids = {to_obj_id(r["store_id"]) for r in ratings}
        users = {str(u["_id"]): u for u in self.db["user"].find({"_id": {"$in": list(user_oids)}})} if user_oids else {}
        stores = {str(s["_id"]): s for s in self.db["store"].find({"_id": {"$in": list(store_oids)}})} if store_oids else {}

        result = []
        for r in ratings:
            u = users.get(r["user_id"])
            s = stores.get(r["store_id"])
            result.append({
                "id": r["id"],
                "value": r["value"],
                "created_at": r["created_at"],
                "user": {"id": r["user_id"], "name": u["name"], "email": u["email"]} if u else None,
                "store": {"id": r["store_id"], "name": s["name"], "address": s["address"]} if s else None,
            })
        return result


def dashboard_stats(db: Database) -> Dict[str, int]:
    return {
        "total_users": db["user"].count_documents({}),
        "total_stores": db["store"].count_documents({}),
        "total_ratings": db["rating"].count_documents({}),
    }
