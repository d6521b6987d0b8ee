"""
Factory Boy fixtures for building request payloads in tests.
"""

from __future__ import annotations

import factory


class UserDataFactory(factory.DictFactory):
    """Sign-up payload as the identity gateway would forward it."""

    external_id = factory.Sequence(lambda index: f"user_{index:04d}")
    username = factory.Sequence(lambda index: f"writer{index:04d}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    photo = factory.LazyAttribute(lambda o: f"https://img.example.com/{o.username}.png")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")


class PostDataFactory(factory.DictFactory):
    title = factory.Faker("sentence", nb_words=6)
    content = factory.Faker("paragraph", nb_sentences=3)


__all__ = ["PostDataFactory", "UserDataFactory"]
