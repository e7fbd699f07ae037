"""Table of the backend collections the dashboard manages.

Each :class:`ResourceSpec` names the collection endpoint, the entity model,
which fields hold images or rich text, which fields a form must fill in, and
how a fetched list is folded into the :class:`ContentDocument`.
"""

from typing import Any, Callable, Dict, List, Literal, NamedTuple, Optional, Sequence, Type

from app.models.base import ActivatableEntity, Entity
from app.models.content import About, Contact, ContentDocument, Hero, HeroSlide, Service, TeamMember
from app.models.site import Disclaimer, FooterData, HeaderMenu, PrivacyPolicy, SiteSetting, Term
from app.models.submission import ContactSubmission

Merge = Callable[[ContentDocument, List[Any]], Dict[str, Any]]
Kind = Literal["list", "activatable", "submissions"]


class ResourceSpec(NamedTuple):
    name: str
    endpoint: str
    model: Type[Entity]
    kind: Kind = "list"
    image_fields: Sequence[str] = ()
    html_fields: Sequence[str] = ()
    required_fields: Sequence[str] = ()
    # File fields that must carry an upload when creating a new item
    required_files: Sequence[str] = ()
    merge: Optional[Merge] = None


def _active_item(
    items: List[ActivatableEntity], fallback_first: bool
) -> Optional[ActivatableEntity]:
    for item in items:
        if item.active:
            return item
    return items[0] if items and fallback_first else None


def _merge_slides(document: ContentDocument, items: List[HeroSlide]) -> Dict[str, Any]:
    slides = sorted(items, key=lambda slide: slide.order_index)
    if not slides:
        return {"hero": document.hero.model_copy(update={"slides": []})}
    first = slides[0]
    image = first.image if isinstance(first.image, str) else document.hero.image
    hero = Hero(
        title=first.title,
        subtitle=first.subtitle,
        description=first.description,
        image=image,
        slides=slides,
    )
    return {"hero": hero}


def _merge_about(document: ContentDocument, items: List[About]) -> Dict[str, Any]:
    # The backend keeps a list of abouts; the first one is the active section.
    return {"about": items[0] if items else document.about}


def _merge_contact(document: ContentDocument, items: List[Contact]) -> Dict[str, Any]:
    return {"contact": items[0] if items else document.contact}


def _merge_active(field: str, fallback_first: bool = True) -> Merge:
    def merge(document: ContentDocument, items: List[Any]) -> Dict[str, Any]:
        return {field: _active_item(items, fallback_first)}

    return merge


SECTIONS: Dict[str, ResourceSpec] = {
    spec.name: spec
    for spec in (
        ResourceSpec(
            name="hero",
            endpoint="hero-slides",
            model=HeroSlide,
            image_fields=("image",),
            required_fields=("title", "subtitle", "description"),
            merge=_merge_slides,
        ),
        ResourceSpec(
            name="services",
            endpoint="services",
            model=Service,
            required_fields=("title", "description"),
            merge=lambda document, items: {"services": items},
        ),
        ResourceSpec(
            name="team",
            endpoint="teams",
            model=TeamMember,
            image_fields=("image",),
            required_fields=("name", "position"),
            required_files=("image",),
            merge=lambda document, items: {"team": items},
        ),
        ResourceSpec(
            name="abouts",
            endpoint="abouts",
            model=About,
            image_fields=("image",),
            required_fields=("title",),
            merge=_merge_about,
        ),
        ResourceSpec(
            name="contact",
            endpoint="contacts",
            model=Contact,
            required_fields=("phone", "email", "address"),
            merge=_merge_contact,
        ),
        ResourceSpec(
            name="footers",
            endpoint="footers",
            model=FooterData,
            kind="activatable",
            image_fields=("logo",),
            required_fields=("copyright_text",),
            merge=_merge_active("footer"),
        ),
        ResourceSpec(
            name="headers",
            endpoint="headers",
            model=HeaderMenu,
            kind="activatable",
            image_fields=("logo_path",),
            merge=_merge_active("header"),
        ),
        ResourceSpec(
            name="settings",
            endpoint="site-settings",
            model=SiteSetting,
            kind="activatable",
            image_fields=("logo",),
            required_files=("logo",),
            merge=_merge_active("settings"),
        ),
        ResourceSpec(
            name="privacy_policies",
            endpoint="privacy-policies",
            model=PrivacyPolicy,
            kind="activatable",
            html_fields=("content",),
            required_fields=("title", "content"),
            merge=_merge_active("privacy_policy", fallback_first=False),
        ),
        ResourceSpec(
            name="terms",
            endpoint="terms-conditions",
            model=Term,
            kind="activatable",
            html_fields=("content",),
            required_fields=("title", "content"),
            merge=_merge_active("terms", fallback_first=False),
        ),
        ResourceSpec(
            name="disclaimers",
            endpoint="disclaimers",
            model=Disclaimer,
            kind="activatable",
            html_fields=("content",),
            required_fields=("title", "content"),
            merge=_merge_active("disclaimer", fallback_first=False),
        ),
        ResourceSpec(
            name="submissions",
            endpoint="contact-submissions",
            model=ContactSubmission,
            kind="submissions",
        ),
    )
}
