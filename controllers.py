"""
Portfolio collections

One ResourceController per collection. Most of them are pure configuration;
Blog, Category, Project, Skill and Settings add derived fields, uniqueness
rules or extra operations on top of the generic behaviour.
"""

import math
import re
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from database import create_document, get_documents, increment, serialize, utcnow
from derived import derive_excerpt, derive_read_time, parse_json, slugify, split_list, to_int
from errors import ConflictError, ValidationError
from resources import Filter, Payload, ResourceController, coerce_payload, validate
import schemas


def iexact(value: str) -> Dict[str, Any]:
    """Case-insensitive exact match condition."""
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


# ========
# Projects
# ========

class ProjectController(ResourceController):
    label = "Project"
    collection = "projects"
    schema = schemas.Project
    filters = {
        "featured": Filter("featured", "bool"),
        "category": Filter("category"),
        "status": Filter("status"),
    }
    sort = (("order", 1), ("createdAt", -1))
    gallery_fields = ("images",)
    toggles = ("featured",)

    def bind_files(self, data, stored, existing, payload):
        released: List[str] = []
        current = list((existing or {}).get("images") or [])

        # An explicit image list may reorder or drop owned images, never add foreign ones
        if existing is not None and "images" in payload and "images" not in stored:
            requested = split_list(payload["images"]) or []
            data["images"] = [path for path in requested if path in current]
            released = [path for path in current if path not in data["images"]]

        released += super().bind_files(data, stored, existing, payload)
        if existing is None:
            data.setdefault("images", [])

        images = data.get("images", current)
        thumbnail = data.get("thumbnail", (existing or {}).get("thumbnail"))
        if images and thumbnail not in images:
            data["thumbnail"] = images[0]
        elif not images and thumbnail in released:
            data["thumbnail"] = None
        return released


# ======
# Skills
# ======

class SkillController(ResourceController):
    label = "Skill"
    collection = "skills"
    schema = schemas.Skill
    filters = {"category": Filter("category")}
    sort = (("category", 1), ("order", 1), ("name", 1))

    def check_unique(self, data, existing):
        if "name" not in data:
            return
        query: Dict[str, Any] = {"name": data["name"]}
        if existing is not None:
            query["_id"] = {"$ne": existing["_id"]}
        if self.db[self.collection].find_one(query):
            raise ConflictError("Skill with this name already exists")

    def bulk_create(self, items: Any) -> List[Payload]:
        if not isinstance(items, list) or not items:
            raise ValidationError("Please provide an array of skills")
        docs = []
        for item in items:
            if not isinstance(item, dict):
                raise ValidationError("Each skill must be an object")
            docs.append(validate(self.schema, coerce_payload(self.schema, item)))

        names = [doc["name"] for doc in docs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        duplicates += [d["name"] for d in self.db[self.collection].find({"name": {"$in": names}}, {"name": 1})]
        if duplicates:
            raise ConflictError(f"Skills already exist: {', '.join(sorted(set(duplicates)))}")

        now = utcnow()
        for doc in docs:
            doc["createdAt"] = now
            doc["updatedAt"] = now
        result = self.db[self.collection].insert_many(docs)
        for doc, oid in zip(docs, result.inserted_ids):
            doc["_id"] = oid
        logger.info(f"Bulk created {len(docs)} skills")
        return [serialize(doc) for doc in docs]


# ========
# Research
# ========

class ResearchController(ResourceController):
    label = "Research"
    collection = "research"
    schema = schemas.Research
    filters = {
        "type": Filter("type"),
        "featured": Filter("featured", "bool"),
    }
    sort = (("publicationDate", -1), ("createdAt", -1))
    toggles = ("featured",)


# ============
# Achievements
# ============

class AchievementController(ResourceController):
    label = "Achievement"
    collection = "achievements"
    schema = schemas.Achievement
    filters = {
        "category": Filter("category"),
        "featured": Filter("featured", "true"),
    }
    sort = (("order", 1), ("date", -1))
    image_fields = ("image",)
    toggles = ("featured",)


# =====
# Blogs
# =====

class BlogController(ResourceController):
    label = "Blog post"
    collection = "blogs"
    schema = schemas.Blog
    filters = {
        "category": Filter("category", ignore=("all",)),
        "tag": Filter("tags", "member"),
        "featured": Filter("featured", "true"),
    }
    sort = (("createdAt", -1),)
    image_fields = ("coverImage",)
    toggles = ("published", "featured")
    slug_lookup = True

    default_limit = 10
    max_limit = 100

    def check_unique(self, data, existing):
        if "title" not in data:
            return
        slug = slugify(data["title"])
        if existing is not None and slug == existing.get("slug"):
            return
        query: Dict[str, Any] = {"slug": slug}
        if existing is not None:
            query["_id"] = {"$ne": existing["_id"]}
        if self.db[self.collection].find_one(query):
            raise ConflictError("A blog post with this title already exists")

    def prepare(self, data, existing):
        if "title" in data:
            data["slug"] = slugify(data["title"])
        if "content" in data:
            data["readTime"] = derive_read_time(data["content"])

        if existing is None:
            if not data.get("excerpt"):
                data["excerpt"] = derive_excerpt(data["content"])
            data.setdefault("views", 0)
            return

        content = data.get("content", existing.get("content"))
        if "excerpt" in data:
            if not data["excerpt"]:
                data["excerpt"] = derive_excerpt(content)
        elif "content" in data:
            # Regenerate only an excerpt that was itself generated
            previous = existing.get("excerpt")
            if not previous or previous == derive_excerpt(existing.get("content")):
                data["excerpt"] = derive_excerpt(content)

    def page(self, params: Dict[str, Any], include_unpublished: bool = False) -> Tuple[List[Payload], int, int, int]:
        query = self.build_query(params)
        if not include_unpublished or params.get("published") == "true":
            query["published"] = True
        search = (params.get("search") or "").strip()
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"content": pattern}, {"tags": pattern}]

        page = to_int(params.get("page") or 1)
        limit = to_int(params.get("limit") or self.default_limit)
        if not isinstance(page, int) or page < 1:
            page = 1
        if not isinstance(limit, int) or limit < 1:
            limit = self.default_limit
        limit = min(limit, self.max_limit)

        total = self.count(query)
        docs = get_documents(
            self.db, self.collection, query,
            sort=self.sort, skip=(page - 1) * limit, limit=limit, projection={"content": 0},
        )
        return [serialize(doc) for doc in docs], total, page, limit

    def get(self, identifier: str, count_view: bool = True) -> Payload:
        doc = self.resolve(identifier)
        if count_view and doc.get("published"):
            doc = increment(self.db, self.collection, {"_id": doc["_id"]}, "views") or doc
        return serialize(doc)

    def tags(self) -> List[str]:
        return sorted(t for t in self.db[self.collection].distinct("tags", {"published": True}) if t)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


# ==========
# Categories
# ==========

DEFAULT_CATEGORIES = [
    # Project categories
    {"name": "Web Development", "section": "project", "icon": "🌐", "color": "from-blue-500 to-cyan-500", "order": 1},
    {"name": "Mobile App", "section": "project", "icon": "📱", "color": "from-green-500 to-emerald-500", "order": 2},
    {"name": "Machine Learning", "section": "project", "icon": "🤖", "color": "from-purple-500 to-violet-500", "order": 3},
    {"name": "Data Science", "section": "project", "icon": "📊", "color": "from-orange-500 to-amber-500", "order": 4},
    {"name": "DevOps", "section": "project", "icon": "⚙️", "color": "from-gray-500 to-slate-500", "order": 5},
    {"name": "Other", "section": "project", "icon": "📁", "color": "from-gray-500 to-slate-500", "order": 99},
    # Skill categories
    {"name": "Frontend", "section": "skill", "icon": "🎨", "color": "from-blue-500 to-cyan-500", "order": 1},
    {"name": "Backend", "section": "skill", "icon": "⚙️", "color": "from-green-500 to-emerald-500", "order": 2},
    {"name": "Database", "section": "skill", "icon": "🗄️", "color": "from-purple-500 to-violet-500", "order": 3},
    {"name": "DevOps", "section": "skill", "icon": "🚀", "color": "from-orange-500 to-amber-500", "order": 4},
    {"name": "Tools", "section": "skill", "icon": "🔧", "color": "from-pink-500 to-rose-500", "order": 5},
    {"name": "Languages", "section": "skill", "icon": "💻", "color": "from-indigo-500 to-blue-500", "order": 6},
    {"name": "Other", "section": "skill", "icon": "📦", "color": "from-gray-500 to-slate-500", "order": 99},
    # Research categories
    {"name": "Journal Article", "section": "research", "icon": "📄", "color": "from-blue-500 to-cyan-500", "order": 1},
    {"name": "Conference Paper", "section": "research", "icon": "🎤", "color": "from-green-500 to-emerald-500", "order": 2},
    {"name": "Book Chapter", "section": "research", "icon": "📚", "color": "from-purple-500 to-violet-500", "order": 3},
    {"name": "Thesis", "section": "research", "icon": "🎓", "color": "from-yellow-500 to-amber-500", "order": 4},
    {"name": "Patent", "section": "research", "icon": "💡", "color": "from-orange-500 to-red-500", "order": 5},
    {"name": "Working Paper", "section": "research", "icon": "📝", "color": "from-pink-500 to-rose-500", "order": 6},
    {"name": "Other", "section": "research", "icon": "📁", "color": "from-gray-500 to-slate-500", "order": 99},
    # Achievement categories
    {"name": "Competition", "section": "achievement", "icon": "🏆", "color": "from-blue-500 to-cyan-500", "order": 1},
    {"name": "Certification", "section": "achievement", "icon": "📜", "color": "from-green-500 to-emerald-500", "order": 2},
    {"name": "Award", "section": "achievement", "icon": "🎖️", "color": "from-yellow-500 to-amber-500", "order": 3},
    {"name": "Publication", "section": "achievement", "icon": "📚", "color": "from-purple-500 to-violet-500", "order": 4},
    {"name": "Hackathon", "section": "achievement", "icon": "💻", "color": "from-red-500 to-orange-500", "order": 5},
    {"name": "Scholarship", "section": "achievement", "icon": "🎓", "color": "from-pink-500 to-rose-500", "order": 6},
    {"name": "Other", "section": "achievement", "icon": "⭐", "color": "from-gray-500 to-slate-500", "order": 99},
    # Blog categories
    {"name": "Tutorial", "section": "blog", "icon": "📖", "color": "from-blue-500 to-cyan-500", "order": 1},
    {"name": "Technology", "section": "blog", "icon": "💻", "color": "from-green-500 to-emerald-500", "order": 2},
    {"name": "Career", "section": "blog", "icon": "🚀", "color": "from-purple-500 to-violet-500", "order": 3},
    {"name": "Personal", "section": "blog", "icon": "✨", "color": "from-pink-500 to-rose-500", "order": 4},
    {"name": "Thoughts", "section": "blog", "icon": "💭", "color": "from-yellow-500 to-amber-500", "order": 5},
    {"name": "News", "section": "blog", "icon": "📰", "color": "from-red-500 to-orange-500", "order": 6},
    {"name": "Other", "section": "blog", "icon": "📝", "color": "from-gray-500 to-slate-500", "order": 99},
]


class CategoryController(ResourceController):
    label = "Category"
    collection = "categories"
    schema = schemas.Category
    filters = {
        "section": Filter("section"),
        "active": Filter("isActive", "true"),
    }
    sort = (("order", 1), ("name", 1))
    toggles = ("isActive",)

    def find_duplicate(self, name: str, section: str, exclude: Any = None) -> Optional[Payload]:
        query: Dict[str, Any] = {"name": iexact(name), "section": section}
        if exclude is not None:
            query["_id"] = {"$ne": exclude}
        return self.db[self.collection].find_one(query)

    def check_unique(self, data, existing):
        if "name" not in data and "section" not in data:
            return
        name = data.get("name", (existing or {}).get("name"))
        section = data.get("section", (existing or {}).get("section"))
        if self.find_duplicate(name, section, existing["_id"] if existing else None):
            raise ConflictError("Category with this name already exists in this section")

    def prepare(self, data, existing):
        if "name" in data:
            data["slug"] = slugify(data["name"])

    def seed(self) -> Tuple[int, List[Payload]]:
        added = 0
        for item in DEFAULT_CATEGORIES:
            if self.find_duplicate(item["name"], item["section"]):
                continue
            data = validate(self.schema, item)
            data["slug"] = slugify(data["name"])
            create_document(self.db, self.collection, data)
            added += 1
        logger.info(f"Seeded {added} categories")
        docs = get_documents(self.db, self.collection, sort=(("section", 1), ("order", 1)))
        return added, [serialize(doc) for doc in docs]


# =========
# Interests
# =========

class InterestController(ResourceController):
    label = "Interest"
    collection = "interests"
    schema = schemas.Interest
    filters = {
        "category": Filter("category"),
        "active": Filter("isActive", "true"),
    }
    sort = (("order", 1), ("createdAt", -1))
    image_fields = ("image",)
    toggles = ("isActive",)


# ============
# Current work
# ============

class CurrentWorkController(ResourceController):
    label = "Current work"
    collection = "currentwork"
    schema = schemas.CurrentWork
    filters = {
        "status": Filter("status"),
        "type": Filter("type"),
        "category": Filter("category"),
        "active": Filter("isActive", "true"),
        "featured": Filter("isFeatured", "true"),
    }
    sort = (("isFeatured", -1), ("order", 1), ("createdAt", -1))
    image_fields = ("image",)
    toggles = ("isFeatured", "isActive")
    progress_field = "progress"


# ========
# Settings
# ========

class SettingsController(ResourceController):
    """Site-wide settings: a single document created on first read."""

    label = "Settings"
    collection = "settings"
    schema = schemas.SiteSettings
    image_fields = ("profileImage",)

    def singleton(self) -> Payload:
        doc = self.db[self.collection].find_one({})
        if doc is None:
            doc = create_document(self.db, self.collection, {**schemas.SiteSettings().model_dump(), "profileImage": ""})
            logger.info("Created default settings")
        return doc

    def get(self, identifier: Optional[str] = None) -> Payload:
        return serialize(self.singleton())

    def update(self, identifier: Optional[str] = None, payload: Optional[Payload] = None, files=None) -> Payload:
        doc = self.singleton()
        payload = dict(payload or {})
        links = parse_json(payload.get("socialLinks"))
        if isinstance(links, dict):
            payload["socialLinks"] = {**(doc.get("socialLinks") or {}), **links}
        return super().update(str(doc["_id"]), payload, files)

    def upload_profile_image(self, upload: Any) -> Payload:
        if upload is None:
            raise ValidationError("Please upload an image")
        return self.update(files={"profileImage": [upload]})
