from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml


logger = logging.getLogger(__name__)

DIGITAL_CATEGORY_ID = "digital-technology"


def default_dictionary_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config" / "categories.yaml"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str = ""
    core_keywords: tuple[str, ...] = ()
    support_keywords: tuple[str, ...] = ()

    @property
    def keywords(self) -> tuple[str, ...]:
        return self.core_keywords + self.support_keywords


@dataclass(frozen=True)
class SkillGroup:
    name: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class CategoryDictionary:
    """Ordered keyword dictionary shared by the aggregators.

    Built once from configuration and passed explicitly to whatever needs it.
    """

    categories: tuple[Category, ...]
    skill_groups: tuple[SkillGroup, ...] = field(default_factory=tuple)

    def get(self, category_id: str) -> Category | None:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def by_name(self, name: str) -> Category | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    @property
    def digital_keywords(self) -> tuple[str, ...]:
        digital = self.get(DIGITAL_CATEGORY_ID)
        if digital is None:
            return ()
        return tuple(keyword.lower() for keyword in digital.keywords)


def _keyword_list(raw) -> tuple[str, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"Keyword list must be a list, got {type(raw).__name__}")
    return tuple(str(keyword).strip() for keyword in raw if str(keyword).strip())


def _build_category(raw: dict) -> Category:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise ValueError(f"Category entry is missing an id: {raw!r}")
    return Category(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        color=str(raw.get("color", "")),
        core_keywords=_keyword_list(raw.get("core_keywords")),
        support_keywords=_keyword_list(raw.get("support_keywords")),
    )


def _build_skill_group(raw: dict, categories: tuple[Category, ...]) -> SkillGroup:
    if not isinstance(raw, dict):
        raise ValueError(f"Skill group entry must be a mapping: {raw!r}")

    category_id = raw.get("category")
    if category_id:
        category = next((item for item in categories if item.id == category_id), None)
        if category is None:
            raise ValueError(f"Skill group references unknown category: {category_id}")
        limit = int(raw.get("keyword_limit", len(category.core_keywords)))
        keywords = category.core_keywords[:limit]
        name = str(raw.get("name") or category.name)
    else:
        if not raw.get("name"):
            raise ValueError(f"Skill group entry is missing a name: {raw!r}")
        keywords = _keyword_list(raw.get("keywords"))
        name = str(raw["name"])

    return SkillGroup(name=name, keywords=tuple(keyword.lower() for keyword in keywords))


def build_category_dictionary(raw: dict) -> CategoryDictionary:
    if not isinstance(raw, dict) or not raw.get("categories"):
        raise ValueError("Category dictionary must define at least one category")

    categories = tuple(_build_category(entry) for entry in raw["categories"])
    skill_groups = tuple(_build_skill_group(entry, categories) for entry in raw.get("skill_groups") or [])
    return CategoryDictionary(categories=categories, skill_groups=skill_groups)


def load_category_dictionary(path: Path | str | None = None) -> CategoryDictionary:
    config_path = Path(path) if path is not None else default_dictionary_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Category dictionary not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)

    dictionary = build_category_dictionary(raw)
    logger.debug(
        "Loaded %d categories and %d skill groups from %s",
        len(dictionary.categories),
        len(dictionary.skill_groups),
        config_path,
    )
    return dictionary
