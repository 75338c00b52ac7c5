"""
Database Schemas for Portfolio CMS

Each content model validates the writable fields of one MongoDB collection.
Derived fields (slug, excerpt when generated, readTime, views) and stored
asset paths are not part of these models: the controllers own them.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from derived import clamp, to_int


def parse_date(value: Any) -> Any:
    if value in ("", None):
        return None
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


OptionalDate = Annotated[Optional[datetime], BeforeValidator(parse_date)]


class Document(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class Link(Document):
    title: str = ""
    url: str = ""


# Auth
class Admin(Document):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6)
    role: Literal["admin"] = "admin"


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordUpdate(BaseModel):
    currentPassword: str
    newPassword: str = Field(..., min_length=6)


class DetailsUpdate(Document):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# Content
class Project(Document):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    shortDescription: Optional[str] = Field(None, max_length=200)
    thumbnail: Optional[str] = None
    youtubeLink: str = ""
    liveDemoLink: str = ""
    githubLink: str = ""
    techStack: List[str] = []
    category: Literal["web", "mobile", "desktop", "ai-ml", "other"] = "web"
    featured: bool = False
    status: Literal["completed", "in-progress", "archived"] = "completed"
    order: int = 0


class Skill(Document):
    name: str = Field(..., min_length=1)
    category: Literal["frontend", "backend", "database", "devops", "tools", "languages", "frameworks", "other"] = "other"
    proficiency: int = Field(50, ge=0, le=100)
    icon: str = ""
    order: int = 0


class Research(Document):
    title: str = Field(..., min_length=1)
    abstract: str = Field(..., min_length=1)
    authors: List[str] = []
    journalName: Optional[str] = None
    conferenceName: Optional[str] = None
    publicationDate: OptionalDate = None
    pdfLink: str = ""
    doiLink: str = ""
    citations: int = Field(0, ge=0)
    keywords: List[str] = []
    type: Literal["journal", "conference", "thesis", "preprint", "other"] = "journal"
    featured: bool = False


class Achievement(Document):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: Literal["competition", "certification", "award", "publication", "hackathon", "scholarship", "other"] = "award"
    date: OptionalDate = None
    issuer: Optional[str] = None
    credentialLink: Optional[str] = None
    position: Optional[str] = None
    featured: bool = False
    order: int = 0


class Blog(Document):
    title: str = Field(..., min_length=1, max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str = Field(..., min_length=1)
    category: str = "general"
    tags: List[str] = []
    author: str = "Admin"
    published: bool = False
    featured: bool = False
    metaTitle: Optional[str] = None
    metaDescription: Optional[str] = None


class Category(Document):
    name: str = Field(..., min_length=1)
    section: Literal["project", "skill", "research", "achievement", "blog", "interest", "currentwork"]
    icon: str = "📁"
    color: str = "from-gray-500 to-slate-500"
    description: str = ""
    order: int = 0
    isActive: bool = True


class Interest(Document):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    icon: str = "💡"
    category: str = "General"
    links: List[Link] = []
    order: int = 0
    isActive: bool = True


class CurrentWork(Document):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: Literal["project", "learning", "research", "other"] = "project"
    category: str = "General"
    status: Literal["planning", "in-progress", "testing", "nearly-done"] = "in-progress"
    progress: int = 0
    technologies: List[str] = []
    startDate: OptionalDate = Field(default_factory=lambda: datetime.now(timezone.utc))
    expectedEndDate: OptionalDate = None
    links: List[Link] = []
    order: int = 0
    isActive: bool = True
    isFeatured: bool = False

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v):
        v = to_int(v)
        if isinstance(v, int):
            return clamp(v)
        return v


# Settings (singleton)
class SocialLinks(Document):
    github: str = ""
    linkedin: str = ""
    twitter: str = ""
    website: str = ""
    codeforces: str = ""
    leetcode: str = ""
    codechef: str = ""
    hackerrank: str = ""


class SiteSettings(Document):
    name: str = "Your Name"
    title: str = "Full Stack Developer"
    tagline: str = "I build things for the web."
    bio: str = (
        "I'm a full-stack developer specializing in building exceptional digital experiences. "
        "Currently, I'm focused on building accessible, human-centered products."
    )
    email: str = ""
    phone: str = ""
    location: str = ""
    resumeLink: str = ""
    socialLinks: SocialLinks = Field(default_factory=SocialLinks)
    isAvailableForHire: bool = True
