from typing import Optional

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

import posts
from database import get_db, serialize
from media import MediaGateway, get_media
from schemas import BlogRequest, CommentRequest
from security import get_current_user_id

router = APIRouter(prefix="/blogs")


def _listing(result: dict) -> dict:
    return {"success": True, **serialize(result)}


@router.get("/allblogs")
def all_blogs(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query = posts.parse_list_query(page, limit, search, category, sort)
    return _listing(posts.list_posts(db, query))


@router.get("")
def my_blogs(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    query = posts.parse_list_query(page, limit, search, category, sort)
    return _listing(posts.list_my_posts(db, user_id, query))


@router.post("/postblog", status_code=status.HTTP_201_CREATED)
def post_blog(
    payload: BlogRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    media: MediaGateway = Depends(get_media),
):
    blog = posts.create_post(db, media, user_id, payload.title, payload.description, payload.category,
                             payload.image)
    return {"success": True, "blog": serialize(blog)}


# Comment routes come before "/{blog_id}" so "comment" is not taken for an id
@router.put("/comment")
def create_comment(
    payload: CommentRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    posts.upsert_comment(db, user_id, payload.blog_id, payload.comment)
    return {"success": True, "message": "Your comment saved."}


@router.get("/comment/comments")
def get_comments(id: str, db: Database = Depends(get_db)):
    return {"success": True, "comments": serialize(posts.list_comments(db, id))}


@router.delete("/comment")
def delete_comment(
    blog_id: str,
    id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    posts.delete_comment(db, blog_id, id)
    return {"success": True, "message": "Comment deleted successfully."}


@router.get("/{blog_id}")
def blog_details(blog_id: str, db: Database = Depends(get_db)):
    return {"success": True, "blog": serialize(posts.get_post_details(db, blog_id))}


@router.put("/myblog/{blog_id}", status_code=status.HTTP_201_CREATED)
def update_blog(
    blog_id: str,
    payload: BlogRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    media: MediaGateway = Depends(get_media),
):
    blog = posts.update_post(db, media, user_id, blog_id, payload.title, payload.description,
                             payload.category, payload.image)
    return {"success": True, "blog": serialize(blog)}


@router.delete("/myblog/{blog_id}")
def delete_blog(
    blog_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    media: MediaGateway = Depends(get_media),
):
    posts.delete_post(db, media, user_id, blog_id)
    return {"success": True, "message": "Blog deleted successfully"}
