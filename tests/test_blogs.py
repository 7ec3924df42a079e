from datetime import datetime

import pytest

import database
import posts

IMAGE = "data:image/png;base64,iVBORw0KGgo="


def create_blog(client, title="T1", description="D1", category="Tech", image=None):
    body = {"title": title, "description": description, "category": category}
    if image is not None:
        body["image"] = image
    response = client.post("/api/blogs/postblog", json=body)
    assert response.status_code == 201, response.text
    return response.json()["blog"]


class TestCreate:

    def test_create_blog(self, ann, db):
        client, user = ann
        blog = create_blog(client)
        assert blog["author"] == user["_id"]
        assert blog["num_of_comments"] == 0
        assert blog["comments"] == []
        assert blog["image"] == {}
        assert db["blog"].count_documents({}) == 1

    def test_create_with_image(self, ann, media):
        client, _ = ann
        blog = create_blog(client, image=IMAGE)
        assert blog["image"]["public_id"] in media.assets
        assert blog["image"]["url"] == media.assets[blog["image"]["public_id"]]

    def test_missing_fields(self, ann, db):
        client, _ = ann
        response = client.post("/api/blogs/postblog", json={"title": "T1", "description": "D1"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Please fill in all fields!"}
        assert db["blog"].count_documents({}) == 0

    def test_failed_upload_creates_nothing(self, ann, media, db):
        client, _ = ann
        media.fail_upload = True
        response = client.post("/api/blogs/postblog",
                               json={"title": "T1", "description": "D1", "category": "Tech", "image": IMAGE})
        assert response.status_code == 500
        assert response.json()["message"] == "Image could not be uploaded"
        assert db["blog"].count_documents({}) == 0

    def test_requires_login(self, client):
        response = client.post("/api/blogs/postblog", json={"title": "T1", "description": "D1", "category": "Tech"})
        assert response.status_code == 401


class TestListing:

    @pytest.fixture
    def seeded(self, ann, bob):
        ann_client, _ = ann
        bob_client, _ = bob
        for i in range(3):
            create_blog(ann_client, title=f"Python tips {i}", category="Tech")
        create_blog(ann_client, title="Morning walk", category="Life")
        create_blog(bob_client, title="Rust or Python", category="Tech")
        create_blog(bob_client, title="Baking bread", category="Food")
        return ann_client, bob_client

    def test_defaults(self, client, seeded):
        data = client.get("/api/blogs/allblogs").json()
        assert data["success"] is True
        assert data["page"] == 1
        assert data["limit"] == 5
        assert data["total"] == 6
        assert data["blog_counts"] == 5
        assert sorted(data["categories"]) == ["Food", "Life", "Tech"]
        titles = [b["title"] for b in data["blogs"]]
        assert titles[0] == "Python tips 0"

    def test_second_page(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"page": 2, "limit": 4}).json()
        assert data["page"] == 2
        assert data["blog_counts"] == 2
        assert [b["title"] for b in data["blogs"]] == ["Rust or Python", "Baking bread"]

    def test_invalid_paging_falls_back(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"page": "0", "limit": "abc"}).json()
        assert data["page"] == 1
        assert data["limit"] == 5

    def test_search_is_case_insensitive_substring(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"search": "pYtHoN"}).json()
        assert data["total"] == 4
        assert all("python" in b["title"].lower() for b in data["blogs"])

    def test_search_is_literal(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"search": ".*"}).json()
        assert data["blog_counts"] == 0

    def test_explicit_categories(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"category": "Life,Food"}).json()
        assert sorted(b["category"] for b in data["blogs"]) == ["Food", "Life"]
        assert sorted(data["categories"]) == ["Food", "Life", "Tech"]

    def test_categories_are_case_sensitive(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"category": "tech"}).json()
        assert data["blogs"] == []

    def test_sort_descending(self, client, seeded):
        data = client.get("/api/blogs/allblogs", params={"sort": "title,desc", "limit": 10}).json()
        titles = [b["title"] for b in data["blogs"]]
        assert titles == sorted(titles, reverse=True)

    def test_authors_are_resolved(self, client, seeded):
        blog = client.get("/api/blogs/allblogs").json()["blogs"][0]
        assert blog["author"]["name"] == "Ann"
        assert set(blog["author"]) == {"_id", "name", "avatar", "bio"}

    def test_my_blogs(self, seeded):
        _, bob_client = seeded
        data = bob_client.get("/api/blogs").json()
        assert data["total"] == 2
        assert {b["title"] for b in data["blogs"]} == {"Rust or Python", "Baking bread"}
        assert all(b["author"]["name"] == "Bob" for b in data["blogs"])

    def test_my_blogs_requires_login(self, client):
        assert client.get("/api/blogs").status_code == 401


class TestDetails:

    def test_found(self, ann, client):
        ann_client, _ = ann
        blog = create_blog(ann_client)
        data = client.get(f"/api/blogs/{blog['_id']}").json()
        assert data["blog"]["title"] == "T1"
        assert data["blog"]["author"]["name"] == "Ann"

    @pytest.mark.parametrize("blog_id", ["64b7f0c2a1b2c3d4e5f60718", "not-an-id"])
    def test_missing_returns_null(self, client, blog_id):
        response = client.get(f"/api/blogs/{blog_id}")
        assert response.status_code == 200
        assert response.json() == {"success": True, "blog": None}


class TestUpdate:

    def test_author_can_update(self, ann):
        client, _ = ann
        blog = create_blog(client)
        response = client.put(f"/api/blogs/myblog/{blog['_id']}", json={"title": "T2"})
        assert response.status_code == 201
        updated = response.json()["blog"]
        assert updated["title"] == "T2"
        assert updated["description"] == "D1"

    def test_other_user_is_rejected(self, ann, bob, db):
        ann_client, _ = ann
        bob_client, _ = bob
        blog = create_blog(ann_client)
        response = bob_client.put(f"/api/blogs/myblog/{blog['_id']}",
                                  json={"title": "Hacked", "description": "x", "category": "y"})
        assert response.status_code == 401
        stored = db["blog"].find_one({"_id": database.to_object_id(blog["_id"])})
        assert stored["title"] == "T1"
        assert stored["category"] == "Tech"

    def test_unknown_blog(self, ann):
        client, _ = ann
        response = client.put("/api/blogs/myblog/64b7f0c2a1b2c3d4e5f60718", json={"title": "T2"})
        assert response.status_code == 404

    def test_new_image_replaces_old(self, ann, media):
        client, _ = ann
        blog = create_blog(client, image=IMAGE)
        old_id = blog["image"]["public_id"]
        updated = client.put(f"/api/blogs/myblog/{blog['_id']}", json={"image": IMAGE}).json()["blog"]
        assert old_id in media.destroyed
        assert updated["image"]["public_id"] != old_id
        assert updated["image"]["public_id"] in media.assets

    def test_without_image_keeps_current(self, ann, media):
        client, _ = ann
        blog = create_blog(client, image=IMAGE)
        updated = client.put(f"/api/blogs/myblog/{blog['_id']}", json={"title": "T2", "image": ""}).json()["blog"]
        assert updated["image"] == blog["image"]
        assert media.destroyed == []


class TestDelete:

    def test_delete_removes_record_and_asset(self, ann, media, client):
        ann_client, _ = ann
        blog = create_blog(ann_client, image=IMAGE)
        public_id = blog["image"]["public_id"]

        response = ann_client.delete(f"/api/blogs/myblog/{blog['_id']}")
        assert response.status_code == 200
        assert client.get(f"/api/blogs/{blog['_id']}").json()["blog"] is None
        assert public_id not in media.assets

    def test_other_user_cannot_delete(self, ann, bob, db):
        ann_client, _ = ann
        bob_client, _ = bob
        blog = create_blog(ann_client)
        assert bob_client.delete(f"/api/blogs/myblog/{blog['_id']}").status_code == 401
        assert db["blog"].count_documents({}) == 1

    def test_unknown_blog(self, ann):
        client, _ = ann
        assert client.delete("/api/blogs/myblog/64b7f0c2a1b2c3d4e5f60718").status_code == 404


class TestComments:

    def test_second_comment_overwrites(self, ann, client):
        ann_client, _ = ann
        blog = create_blog(ann_client)
        ann_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "hi"})
        ann_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "bye"})

        comments = client.get("/api/blogs/comment/comments", params={"id": blog["_id"]}).json()["comments"]
        assert len(comments) == 1
        assert comments[0]["comment"] == "bye"
        assert comments[0]["name"] == "Ann"
        assert set(comments[0]["user"]) == {"_id", "avatar"}
        assert client.get(f"/api/blogs/{blog['_id']}").json()["blog"]["num_of_comments"] == 1

    def test_overwrite_keeps_position_and_id(self, ann, bob, client):
        ann_client, _ = ann
        bob_client, _ = bob
        blog = create_blog(ann_client)
        ann_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "first"})
        bob_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "second"})
        before = client.get("/api/blogs/comment/comments", params={"id": blog["_id"]}).json()["comments"]
        ann_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "edited"})
        after = client.get("/api/blogs/comment/comments", params={"id": blog["_id"]}).json()["comments"]

        assert [c["comment"] for c in after] == ["edited", "second"]
        assert [c["_id"] for c in after] == [c["_id"] for c in before]
        assert client.get(f"/api/blogs/{blog['_id']}").json()["blog"]["num_of_comments"] == 2

    def test_comment_on_missing_blog(self, ann):
        client, _ = ann
        response = client.put("/api/blogs/comment",
                              json={"blog_id": "64b7f0c2a1b2c3d4e5f60718", "comment": "hi"})
        assert response.status_code == 404

    def test_comment_requires_login(self, client):
        response = client.put("/api/blogs/comment",
                              json={"blog_id": "64b7f0c2a1b2c3d4e5f60718", "comment": "hi"})
        assert response.status_code == 401

    def test_list_comments_missing_blog(self, client):
        response = client.get("/api/blogs/comment/comments", params={"id": "64b7f0c2a1b2c3d4e5f60718"})
        assert response.status_code == 404

    def test_delete_comment_recomputes_count(self, ann, bob, client):
        ann_client, _ = ann
        bob_client, _ = bob
        blog = create_blog(ann_client)
        ann_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "mine"})
        bob_client.put("/api/blogs/comment", json={"blog_id": blog["_id"], "comment": "yours"})
        comments = client.get("/api/blogs/comment/comments", params={"id": blog["_id"]}).json()["comments"]
        bob_comment = next(c for c in comments if c["comment"] == "yours")

        response = ann_client.delete("/api/blogs/comment", params={"blog_id": blog["_id"], "id": bob_comment["_id"]})
        assert response.status_code == 200
        stored = client.get(f"/api/blogs/{blog['_id']}").json()["blog"]
        assert stored["num_of_comments"] == 1
        assert [c["comment"] for c in stored["comments"]] == ["mine"]

    def test_delete_comment_missing_blog(self, ann):
        client, _ = ann
        response = client.delete("/api/blogs/comment", params={"blog_id": "64b7f0c2a1b2c3d4e5f60718", "id": "x"})
        assert response.status_code == 404


class TestCommentWritesFromStaleReads:
    """Two requests that loaded the blog before either one wrote."""

    @pytest.fixture
    def stale_blog(self, ann, db, monkeypatch):
        client, _ = ann
        blog = create_blog(client)
        snapshot = db["blog"].find_one({"_id": database.to_object_id(blog["_id"])})
        monkeypatch.setattr(posts, "_find_blog", lambda _db, _id: dict(snapshot))
        return blog["_id"]

    def stored(self, db, blog_id):
        return db["blog"].find_one({"_id": database.to_object_id(blog_id)})

    def test_two_commenters_keep_count_in_step(self, db, ann, bob, stale_blog):
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "from ann")
        posts.upsert_comment(db, bob[1]["_id"], stale_blog, "from bob")

        blog = self.stored(db, stale_blog)
        assert [c["comment"] for c in blog["comments"]] == ["from ann", "from bob"]
        assert blog["num_of_comments"] == len(blog["comments"]) == 2

    def test_same_author_twice_keeps_one_comment(self, db, ann, stale_blog):
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "first")
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "second")

        blog = self.stored(db, stale_blog)
        assert [c["comment"] for c in blog["comments"]] == ["second"]
        assert blog["num_of_comments"] == 1

    def test_overwrite_does_not_drop_newer_comment(self, db, ann, bob, stale_blog, monkeypatch):
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "hi")
        # Reader of the blog as it stood after Ann's first comment
        after_ann = self.stored(db, stale_blog)
        monkeypatch.setattr(posts, "_find_blog", lambda _db, _id: dict(after_ann))
        posts.upsert_comment(db, bob[1]["_id"], stale_blog, "hello")
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "bye")

        blog = self.stored(db, stale_blog)
        assert [c["comment"] for c in blog["comments"]] == ["bye", "hello"]
        assert blog["num_of_comments"] == 2

    def test_deleting_twice_counts_once(self, db, ann, bob, stale_blog):
        posts.upsert_comment(db, ann[1]["_id"], stale_blog, "mine")
        posts.upsert_comment(db, bob[1]["_id"], stale_blog, "yours")
        bob_comment = self.stored(db, stale_blog)["comments"][1]

        posts.delete_comment(db, stale_blog, str(bob_comment["_id"]))
        posts.delete_comment(db, stale_blog, str(bob_comment["_id"]))

        blog = self.stored(db, stale_blog)
        assert [c["comment"] for c in blog["comments"]] == ["mine"]
        assert blog["num_of_comments"] == 1


class TestDeletedAccount:

    def test_token_of_removed_user_cannot_post(self, ann, db):
        client, user = ann
        db["user"].delete_one({"_id": database.to_object_id(user["_id"])})
        response = client.post("/api/blogs/postblog", json={"title": "T1", "description": "D1", "category": "Tech"})
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "User Not Found!"}
        assert db["blog"].count_documents({}) == 0


def test_sort_accepts_camel_case_field(client, ann, db):
    ann_client, _ = ann
    for day, title in enumerate(("first", "second", "third"), start=1):
        blog = create_blog(ann_client, title=title)
        db["blog"].update_one({"_id": database.to_object_id(blog["_id"])},
                              {"$set": {"created_at": datetime(2024, 1, day)}})
    data = client.get("/api/blogs/allblogs", params={"sort": "createdAt,desc"}).json()
    assert [b["title"] for b in data["blogs"]] == ["third", "second", "first"]
