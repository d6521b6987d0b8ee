#!/usr/bin/env python3
"""
Seed script: creates a realistic dataset for trying out the blog API.

Creates:
  • 10 users
  • A follow graph (each user follows 4 others)
  • 3 posts per user (30 total)
  • Some likes and comments across posts

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8000

Every request is sent with the X-User-Id header the identity gateway would
normally set, so the API treats it as coming from that user.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("alice", "Alice", "Chen"),
    ("bob_builder", "Bob", "Martinez"),
    ("carol_codes", "Carol", "Singh"),
    ("dave_designs", "Dave", "Kim"),
    ("eve_writes", "Eve", "Johnson"),
    ("frank_notes", "Frank", "Williams"),
    ("grace_graphs", "Grace", "Li"),
    ("henry_hikes", "Henry", "Brown"),
    ("iris_ink", "Iris", "Davis"),
    ("jack_journal", "Jack", "Wilson"),
]

SAMPLE_POSTS = [
    ("Hello World", "<p>First post on the new blog. More to come!</p>"),
    ("Notes on async Python", "<p>Cooperative scheduling makes I/O-bound services pleasant.</p>"),
    ("Why I keep a reading log", "<p>Writing down what you read doubles what you remember.</p>"),
    ("Sourdough, attempt #7", "<p>The starter finally behaved. Crumb photos below.</p>"),
    ("A week without notifications", "<p>Turns out nothing urgent happened.</p>"),
    ("Designing a follow graph", "<p>One edge table beats two mirrored arrays.</p>"),
    ("Trail report: Ridge Loop", "<p>Muddy, steep, and absolutely worth it.</p>"),
    ("Ink and paper", "<p>Fountain pens slowed my handwriting down in a good way.</p>"),
    ("Small habits", "<p>Ten minutes a day adds up to sixty hours a year.</p>"),
    ("On editing", "<p>Cut the first paragraph. It is almost always throat-clearing.</p>"),
]

SAMPLE_COMMENTS = [
    "Great read, thanks for sharing!",
    "I had the same experience.",
    "Bookmarking this one.",
    "Would love a follow-up post.",
    "Interesting take.",
]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: Optional[dict], user: Optional[str]) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if user:
            headers["X-User-Id"] = user
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None, user: Optional[str] = None) -> dict:
        return self._send("POST", path, data, user)

    def get(self, path: str) -> dict:
        return self._send("GET", path, None, None)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except (urllib.error.URLError, ConnectionError):
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    external_ids: list[str] = []
    for username, first_name, last_name in BASE_USERS:
        external_id = f"user_{username}"
        result = client.post(
            "/users/",
            {
                "external_id": external_id,
                "email": f"{username}@example.com",
                "username": username,
                "first_name": first_name,
                "last_name": last_name,
                "photo": f"https://avatars.example.com/{username}.png",
            },
        )
        if result.get("id"):
            external_ids.append(external_id)
            print(f"  ✓ {username} ({result['id']})")
        else:
            print(f"  ✗ Failed to create {username}")

    if not external_ids:
        print("No users created, aborting")
        return

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for actor in external_ids:
        others = [u for u in external_ids if u != actor]
        for target in random.sample(others, k=min(4, len(others))):
            client.post(f"/users/{target}/follow", user=actor)
    print("  ✓ Follow graph created")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for idx, actor in enumerate(external_ids):
        for offset in range(3):
            title, content = SAMPLE_POSTS[(idx + offset) % len(SAMPLE_POSTS)]
            result = client.post("/posts/", {"title": title, "content": content}, user=actor)
            if result.get("id"):
                post_ids.append(result["id"])
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes and comments ────────────────────────────────────────────────
    print("\nAdding likes and comments...")
    likes = comments = 0
    for post_id in post_ids:
        for actor in random.sample(external_ids, k=random.randint(0, 5)):
            client.post(f"/posts/{post_id}/like", user=actor)
            likes += 1
        for actor in random.sample(external_ids, k=random.randint(0, 2)):
            client.post(
                f"/posts/{post_id}/comments",
                {"content": random.choice(SAMPLE_COMMENTS)},
                user=actor,
            )
            comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = external_ids[0]
    print("# Home feed:")
    print(f"  curl -s '{api_url}/posts/?page=1&limit=10' | python3 -m json.tool\n")
    print(f"# Directory as seen by '{BASE_USERS[0][0]}':")
    print(f"  curl -s -H 'X-User-Id: {u}' '{api_url}/users/' | python3 -m json.tool\n")
    print("# Create a new post:")
    print(f"  curl -s -X POST '{api_url}/posts/' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -H 'X-User-Id: {u}' \\")
    print("    -d '{\"title\": \"Hi\", \"content\": \"Hello world!\"}' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Social Blog API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
