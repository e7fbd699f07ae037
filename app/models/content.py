from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.models.base import Entity, ImageRef
from app.models.site import Disclaimer, FooterData, HeaderMenu, PrivacyPolicy, SiteSetting, Term


class Service(Entity):
    title: str = ""
    description: str = Field(
        default="", validation_alias=AliasChoices("description", "short_description")
    )
    long_description: Optional[str] = None
    icon: Optional[str] = None
    features: List[str] = Field(default_factory=list)

    @field_validator("features", mode="before")
    @classmethod
    def _features_list(cls, value: Any) -> Any:
        return [] if value is None else value


class SocialLinks(BaseModel):
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    facebook: Optional[str] = None


class TeamMember(Entity):
    name: str = ""
    position: str = ""
    image: ImageRef = ""
    bio: Optional[str] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)

    @field_validator("social_links", mode="before")
    @classmethod
    def _social_links_mapping(cls, value: Any) -> Any:
        """Accept the backend's ``[{"key": "twitter", "value": "..."}]`` form."""
        if value is None:
            return {}
        if isinstance(value, list):
            return {
                entry["key"]: entry.get("value")
                for entry in value
                if isinstance(entry, dict) and entry.get("key")
            }
        return value


class About(Entity):
    title: str = ""
    description: Optional[str] = None
    mission: Optional[str] = None
    vision: Optional[str] = None
    image: ImageRef = ""


class Contact(Entity):
    phone: str = ""
    email: str = ""
    address: str = ""
    hours: str = ""


class ContactForm(BaseModel):
    title: str = ""
    subtitle: str = ""
    success_message: str = ""


class HeroSlide(Entity):
    title: str = ""
    subtitle: str = ""
    description: str = ""
    image: ImageRef = ""
    order_index: int = Field(default=0, validation_alias=AliasChoices("order_index", "orderIndex"))


class Hero(BaseModel):
    title: str = ""
    subtitle: str = ""
    description: str = ""
    image: str = ""
    slides: List[HeroSlide] = Field(default_factory=list)


class ContentDocument(BaseModel):
    """Everything the public site renders, assembled from the synced sections."""

    hero: Hero = Field(default_factory=Hero)
    services: List[Service] = Field(default_factory=list)
    team: List[TeamMember] = Field(default_factory=list)
    about: About = Field(default_factory=About)
    contact: Contact = Field(default_factory=Contact)
    contact_form: ContactForm = Field(default_factory=ContactForm)
    footer: Optional[FooterData] = None
    header: Optional[HeaderMenu] = None
    settings: Optional[SiteSetting] = None
    privacy_policy: Optional[PrivacyPolicy] = None
    terms: Optional[Term] = None
    disclaimer: Optional[Disclaimer] = None


def default_document() -> ContentDocument:
    """Return the content shown before the backend has answered."""
    return ContentDocument(
        hero=Hero(
            title="Empowering Business Growth",
            subtitle="Thrive Enterprise Solutions",
            description=(
                "Transform your business with our comprehensive enterprise solutions. "
                "We deliver innovative technology and strategic consulting to help your "
                "organization thrive in today's competitive landscape."
            ),
        ),
        about=About(
            title="About Thrive Enterprise Solutions",
            description=(
                "We are a leading enterprise solutions provider dedicated to helping "
                "businesses transform and thrive in the digital age."
            ),
            mission=(
                "To empower businesses with innovative solutions that drive growth, "
                "efficiency, and competitive advantage."
            ),
            vision=(
                "To be the trusted partner for enterprises seeking transformative "
                "business solutions and sustainable success."
            ),
        ),
        contact=Contact(
            phone="+61 2 8765 4321",
            email="info@thriveenterprisesolutions.com.au",
            address="Level 15, 123 Collins Street, Melbourne VIC 3000, Australia",
            hours="Monday - Friday: 9:00 AM - 6:00 PM",
        ),
        contact_form=ContactForm(
            title="Get in touch",
            subtitle="Feel free to contact us and we will get back to you as soon as possible",
            success_message="Thank you for your message! We'll get back to you within 24 hours.",
        ),
    )
