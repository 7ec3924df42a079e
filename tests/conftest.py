import os
import re

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from errors import EmailError, MediaError
from mailer import get_mailer
from main import app
from media import get_media


class FakeMedia:
    """In-memory stand-in for the Cloudinary gateway."""

    def __init__(self):
        self.assets = {}
        self.destroyed = []
        self.fail_upload = False
        self._counter = 0

    def upload(self, payload, folder, **options):
        if self.fail_upload:
            raise MediaError("Image could not be uploaded")
        self._counter += 1
        public_id = f"{folder}/asset{self._counter}"
        url = f"https://media.test/{public_id}.png"
        self.assets[public_id] = url
        return {"public_id": public_id, "url": url}

    def destroy(self, public_id):
        if not public_id:
            return
        self.destroyed.append(public_id)
        self.assets.pop(public_id, None)

    def upload_avatar(self, payload):
        return self.upload(payload, "blog-avatars", width=300, crop="scale")

    def upload_post_image(self, payload):
        return self.upload(payload, "blog-posts", resource_type="image")


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, subject, html, send_to, sent_from=None, reply_to=None):
        if self.fail:
            raise EmailError("Email not sent, please try again")
        self.sent.append({"subject": subject, "html": html, "to": send_to, "from": sent_from,
                          "reply_to": reply_to})

    def reset_token(self):
        match = re.search(r"/resetpassword/([0-9a-f]{64})", self.sent[-1]["html"])
        return match.group(1)


@pytest.fixture
def db():
    mongo = mongomock.MongoClient()["blog_test"]
    database.ensure_indexes(mongo)
    return mongo


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_client(db, media, mailer):
    app.dependency_overrides[database.get_db] = lambda: db
    app.dependency_overrides[get_media] = lambda: media
    app.dependency_overrides[get_mailer] = lambda: mailer

    def factory():
        # https so the Secure session cookie is sent back
        return TestClient(app, base_url="https://testserver")

    yield factory
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


def register(client, name="Ann", email="a@x.com", password="secret1"):
    response = client.post("/api/users/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def ann(make_client):
    client = make_client()
    data = register(client)
    return client, data["user"]


@pytest.fixture
def bob(make_client):
    client = make_client()
    data = register(client, name="Bob", email="b@x.com", password="secret2")
    return client, data["user"]
