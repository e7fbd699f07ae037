"""Site-wide entities of which the backend keeps exactly one item active."""

import json
from typing import Any, List, Optional

from pydantic import BaseModel, field_validator

from app.models.base import FlagActivatable, ImageRef, StatusActivatable


def _decode_json_list(value: Any) -> Any:
    # Some backends store menu items as a JSON-encoded string column.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return []
        return decoded if isinstance(decoded, list) else []
    return value


class FooterData(FlagActivatable):
    title: str = ""
    description: str = ""
    logo: ImageRef = ""
    privacy_link: str = ""
    terms_link: str = ""
    disclaimer_link: str = ""
    copyright_text: str = ""
    designer_text: str = ""
    facebook_url: str = ""
    twitter_url: str = ""
    instagram_url: str = ""
    pinterest_url: str = ""
    linkedin_url: str = ""


class HeaderMenu(FlagActivatable):
    logo_path: ImageRef = ""
    menu_items: List[str] = []

    @field_validator("menu_items", mode="before")
    @classmethod
    def _menu_items_list(cls, value: Any) -> Any:
        return _decode_json_list(value)


class MenuLink(BaseModel):
    label: str = ""
    url: str = ""


class SiteSetting(FlagActivatable):
    site_name: str = ""
    logo: ImageRef = ""
    menu_items: List[MenuLink] = []

    @field_validator("menu_items", mode="before")
    @classmethod
    def _menu_items_list(cls, value: Any) -> Any:
        return _decode_json_list(value)


class PrivacyPolicy(FlagActivatable):
    title: str = ""
    content: str = ""
    last_updated: Optional[str] = None


class Term(StatusActivatable):
    title: str = ""
    content: str = ""


class Disclaimer(StatusActivatable):
    title: str = ""
    content: str = ""
