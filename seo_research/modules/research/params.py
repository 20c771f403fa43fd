"""Typed, validated parameters for each research workflow.

Each ``from_dict`` accepts snake_case keys and the camelCase names used by
API clients (``seedKeywords``, ``minSearchVolume`` ...).
"""

import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Optional

from seo_research.errors import ValidationError
from seo_research.utils.helpers import extract_domain
from seo_research.utils.validators import validate_domain, validate_keyword_list

DEFAULT_LOCATION = "United States"
DEFAULT_LANGUAGE = "English"


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _normalise_keys(raw: dict[str, Any]) -> dict[str, Any]:
    return {_snake(key): value for key, value in (raw or {}).items()}


def _known(cls, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names and value is not None}


def _check_choice(value: str, choices: tuple[str, ...], label: str) -> None:
    if value not in choices:
        raise ValidationError(f"{label} must be one of {', '.join(choices)}; got {value!r}")


def _check_keywords(keywords: Any, max_count: int, label: str) -> None:
    ok, message = validate_keyword_list(keywords, min_count=1, max_count=max_count, label=label)
    if not ok:
        raise ValidationError(message)


@dataclass
class KeywordDiscoveryParams:
    seed_keywords: list[str] = field(default_factory=list)
    location: str = DEFAULT_LOCATION
    language: str = DEFAULT_LANGUAGE
    include_questions: bool = True
    include_long_tail: bool = True
    min_search_volume: int = 0
    max_keyword_difficulty: int = 100
    analysis_depth: str = "standard"

    DEPTHS = ("quick", "standard", "comprehensive")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "KeywordDiscoveryParams":
        params = cls(**_known(cls, _normalise_keys(raw)))
        params.validate()
        return params

    def validate(self) -> None:
        _check_keywords(self.seed_keywords, 5, "seed keyword")
        _check_choice(self.analysis_depth, self.DEPTHS, "analysis_depth")
        if self.min_search_volume < 0:
            raise ValidationError("min_search_volume must be >= 0")
        if not 0 <= self.max_keyword_difficulty <= 100:
            raise ValidationError("max_keyword_difficulty must be between 0 and 100")

    @property
    def wants_summary(self) -> bool:
        return self.analysis_depth in ("standard", "comprehensive")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SerpAnalysisParams:
    keywords: list[str] = field(default_factory=list)
    location: str = DEFAULT_LOCATION
    language: str = DEFAULT_LANGUAGE
    device: str = "desktop"
    include_ads: bool = False
    include_local: bool = False
    include_featured: bool = True
    analysis_type: str = "snapshot"
    competitor_domains: list[str] = field(default_factory=list)

    DEVICES = ("desktop", "mobile", "tablet")
    ANALYSIS_TYPES = ("snapshot", "competitor", "features", "comprehensive")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SerpAnalysisParams":
        params = cls(**_known(cls, _normalise_keys(raw)))
        params.validate()
        return params

    def validate(self) -> None:
        _check_keywords(self.keywords, 10, "keyword")
        _check_choice(self.device, self.DEVICES, "device")
        _check_choice(self.analysis_type, self.ANALYSIS_TYPES, "analysis_type")
        if self.analysis_type == "competitor" and not self.competitor_domains:
            raise ValidationError("Competitor domains required for competitor analysis")
        for domain in self.competitor_domains:
            ok, message = validate_domain(domain)
            if not ok:
                raise ValidationError(f"Invalid competitor domain {domain!r}: {message}")

    @property
    def wants_summary(self) -> bool:
        return self.analysis_type in ("features", "comprehensive")

    @property
    def wants_competitor_analysis(self) -> bool:
        return self.analysis_type in ("competitor", "comprehensive")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class KeywordFilterParams:
    min_search_volume: int = 0
    max_position: int = 100
    include_questions: bool = True
    include_branded: bool = True


@dataclass
class CompetitorResearchParams:
    target_domain: str = ""
    competitor_domains: list[str] = field(default_factory=list)
    location: str = DEFAULT_LOCATION
    language: str = DEFAULT_LANGUAGE
    analysis_type: str = "keywords"
    keyword_filters: KeywordFilterParams = field(default_factory=KeywordFilterParams)
    report_depth: str = "overview"

    ANALYSIS_TYPES = ("keywords", "content", "backlinks", "comprehensive")
    DEPTHS = ("overview", "detailed", "comprehensive")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CompetitorResearchParams":
        data = _known(cls, _normalise_keys(raw))
        filters: Optional[dict[str, Any]] = data.pop("keyword_filters", None)
        params = cls(**data)
        if filters:
            params.keyword_filters = KeywordFilterParams(
                **_known(KeywordFilterParams, _normalise_keys(filters))
            )
        params.validate()
        return params

    def validate(self) -> None:
        ok, message = validate_domain(self.target_domain)
        if not ok:
            raise ValidationError(f"Invalid target domain {self.target_domain!r}: {message}")
        ok, message = validate_keyword_list(
            self.competitor_domains, min_count=1, max_count=10, label="competitor domain"
        )
        if not ok:
            raise ValidationError(message)
        for domain in self.competitor_domains:
            ok, message = validate_domain(domain)
            if not ok:
                raise ValidationError(f"Invalid competitor domain {domain!r}: {message}")
        _check_choice(self.analysis_type, self.ANALYSIS_TYPES, "analysis_type")
        _check_choice(self.report_depth, self.DEPTHS, "report_depth")
        self.target_domain = extract_domain(self.target_domain)
        self.competitor_domains = [extract_domain(domain) for domain in self.competitor_domains]

    @property
    def wants_summary(self) -> bool:
        return self.report_depth in ("detailed", "comprehensive")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
