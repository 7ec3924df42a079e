"""
Blog post and comment operations.

Listing follows a simple offset pagination scheme: ``skip = (page - 1) * limit``.
Authors and comment users are resolved from the ``user`` collection into small
display subsets after the page is fetched.
"""

import logging
import re
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from accounts import find_user_by_id
from database import create_document, to_object_id, utcnow
from errors import AuthError, NotFoundError, ValidationError
from media import MediaGateway
from schemas import Blog, BlogListQuery, Comment, ImageRef

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"
AUTHOR_FIELDS = ("name", "avatar", "bio")
COMMENT_USER_FIELDS = ("avatar",)
# Clients built against the camelCase API still send these
SORT_FIELD_ALIASES = {"createdAt": "created_at", "updatedAt": "updated_at", "numOfComments": "num_of_comments"}
SORT_DIRECTIONS = {
    "asc": ASCENDING, "ascending": ASCENDING, "1": ASCENDING,
    "desc": DESCENDING, "descending": DESCENDING, "-1": DESCENDING,
}


def _to_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def parse_list_query(page=None, limit=None, search=None, category=None, sort=None) -> BlogListQuery:
    """
    Build a listing filter from raw query string values.

    ``sort`` is ``"field"`` or ``"field,direction"``; anything unparseable falls
    back to the defaults rather than failing the request.
    """
    sort_field, sort_direction = "created_at", ASCENDING
    if sort:
        parts = [p.strip() for p in sort.split(",")]
        if parts[0]:
            sort_field = SORT_FIELD_ALIASES.get(parts[0], parts[0])
        if len(parts) > 1:
            sort_direction = SORT_DIRECTIONS.get(parts[1].lower(), ASCENDING)
    return BlogListQuery(
        page=_to_int(page, 1),
        limit=_to_int(limit, 5),
        search=search or "",
        category=category or ALL_CATEGORIES,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )


def build_blog_filter(query: BlogListQuery, categories: List[str], author: Optional[ObjectId] = None) -> dict:
    if query.category == ALL_CATEGORIES:
        selected = list(categories)
    else:
        selected = [c for c in query.category.split(",") if c]
    filter_dict = {
        "title": {"$regex": re.escape(query.search), "$options": "i"},
        "category": {"$in": selected},
    }
    if author is not None:
        filter_dict["author"] = author
    return filter_dict


def _display_users(db: Database, ids: Iterable[ObjectId], fields: Iterable[str]) -> dict:
    ids = list({i for i in ids if i is not None})
    if not ids:
        return {}
    projection = {f: 1 for f in fields}
    return {u["_id"]: u for u in db["user"].find({"_id": {"$in": ids}}, projection)}


def populate(db: Database, blogs: List[dict]) -> List[dict]:
    """Swap author and comment user ids for their display fields in place."""
    authors = _display_users(db, (b.get("author") for b in blogs), AUTHOR_FIELDS)
    commenters = _display_users(
        db, (c.get("user") for b in blogs for c in b.get("comments", [])), COMMENT_USER_FIELDS
    )
    for blog in blogs:
        blog["author"] = authors.get(blog.get("author"), blog.get("author"))
        for comment in blog.get("comments", []):
            comment["user"] = commenters.get(comment.get("user"), comment.get("user"))
    return blogs


def _list(db: Database, query: BlogListQuery, author: Optional[ObjectId] = None) -> dict:
    # Distinct scan and the count below are separate reads; a category removed
    # in between only skews the reported total
    categories = db["blog"].distinct("category")

    filter_dict = build_blog_filter(query, categories, author)
    skip = (query.page - 1) * query.limit
    blogs = list(
        db["blog"].find(filter_dict)
        .sort(query.sort_field, query.sort_direction)
        .skip(skip)
        .limit(query.limit)
    )
    populate(db, blogs)

    total_filter = {
        "category": {"$in": categories},
        "title": {"$regex": re.escape(query.search), "$options": "i"},
    }
    if author is not None:
        total_filter["author"] = author
    total = db["blog"].count_documents(total_filter)

    return {
        "total": total,
        "page": query.page,
        "limit": query.limit,
        "blog_counts": len(blogs),
        "blogs": blogs,
        "categories": categories,
    }


def list_posts(db: Database, query: BlogListQuery) -> dict:
    return _list(db, query)


def list_my_posts(db: Database, user_id: str, query: BlogListQuery) -> dict:
    return _list(db, query, author=to_object_id(user_id))


def _find_blog(db: Database, blog_id) -> Optional[dict]:
    oid = to_object_id(blog_id)
    if oid is None:
        return None
    return db["blog"].find_one({"_id": oid})


def get_post_details(db: Database, blog_id: str) -> Optional[dict]:
    blog = _find_blog(db, blog_id)
    if blog is None:
        return None
    return populate(db, [blog])[0]


def _owned_blog(db: Database, user_id: str, blog_id: str) -> dict:
    blog = _find_blog(db, blog_id)
    if not blog:
        raise NotFoundError("Blog not found!")
    if str(blog["author"]) != str(user_id):
        logger.warning("User %s tried to modify blog %s", user_id, blog_id)
        raise AuthError("User not authorized!")
    return blog


def create_post(db: Database, media: MediaGateway, user_id: str, title: Optional[str],
                description: Optional[str], category: Optional[str], image: Optional[str] = None) -> dict:
    if not title or not description or not category:
        raise ValidationError("Please fill in all fields!")

    image_data = None
    if image:
        image_data = ImageRef(**media.upload_post_image(image))

    blog = Blog(author=str(user_id), title=title, description=description, category=category,
                image=image_data)
    doc = blog.model_dump()
    doc["author"] = to_object_id(user_id)
    doc["image"] = doc["image"] or {}
    created = create_document(db, "blog", doc)
    logger.info("Blog %s created by user %s", created["_id"], user_id)
    return created


def update_post(db: Database, media: MediaGateway, user_id: str, blog_id: str, title: Optional[str] = None,
                description: Optional[str] = None, category: Optional[str] = None,
                image: Optional[str] = None) -> dict:
    blog = _owned_blog(db, user_id, blog_id)

    changes = {k: v for k, v in (("title", title), ("description", description), ("category", category))
               if v is not None}
    if image:
        media.destroy((blog.get("image") or {}).get("public_id"))
        changes["image"] = ImageRef(**media.upload_post_image(image)).model_dump()

    changes["updated_at"] = utcnow()
    db["blog"].update_one({"_id": blog["_id"]}, {"$set": changes})
    return db["blog"].find_one({"_id": blog["_id"]})


def delete_post(db: Database, media: MediaGateway, user_id: str, blog_id: str) -> None:
    blog = _owned_blog(db, user_id, blog_id)
    # Two independent calls; a crash in between can orphan the asset
    media.destroy((blog.get("image") or {}).get("public_id"))
    db["blog"].delete_one({"_id": blog["_id"]})
    logger.info("Blog %s deleted by user %s", blog["_id"], user_id)


def upsert_comment(db: Database, user_id: str, blog_id: str, text: str) -> None:
    if not blog_id or not text:
        raise ValidationError("Please fill in all fields!")
    blog = _find_blog(db, blog_id)
    if not blog:
        raise NotFoundError("Blog not found!")
    user = find_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User Not Found!")

    # Writes are decided by the stored document, not the copy read above
    if _overwrite_comment(db, blog["_id"], user["_id"], text):
        return

    comment = Comment(user=str(user["_id"]), name=user.get("name", ""), comment=text).model_dump()
    comment.update({"_id": ObjectId(), "user": user["_id"], "created_at": utcnow()})
    pushed = db["blog"].update_one(
        {"_id": blog["_id"], "comments.user": {"$ne": user["_id"]}},
        {"$push": {"comments": comment}, "$inc": {"num_of_comments": 1}},
    )
    if not pushed.modified_count:
        # Same user commented in between
        _overwrite_comment(db, blog["_id"], user["_id"], text)


def _overwrite_comment(db: Database, blog_oid: ObjectId, user_oid: ObjectId, text: str) -> bool:
    """Replace the user's comment text in place; False when they have none."""
    result = db["blog"].update_one(
        {"_id": blog_oid, "comments.user": user_oid},
        {"$set": {"comments.$.comment": text}},
    )
    return result.matched_count > 0


def list_comments(db: Database, blog_id: str) -> List[dict]:
    blog = _find_blog(db, blog_id)
    if not blog:
        raise NotFoundError("Blog not found.")
    return populate(db, [blog])[0].get("comments", [])


def delete_comment(db: Database, blog_id: str, comment_id: str) -> None:
    # No ownership check here: any caller holding both ids can remove a comment
    blog = _find_blog(db, blog_id)
    if not blog:
        raise NotFoundError("Blog not found!")

    comment_oid = to_object_id(comment_id)
    if comment_oid is None:
        return
    # Matches only while the comment is still there, so the count moves with the list
    db["blog"].update_one(
        {"_id": blog["_id"], "comments._id": comment_oid},
        {"$pull": {"comments": {"_id": comment_oid}}, "$inc": {"num_of_comments": -1}},
    )
