"""Explicit session state shared by the store and presentation collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from pharmacentral.ingestion.models import Article

DEFAULT_PAGE_SIZE = 6


class DateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    SOURCE = "source"


_DATE_RANGE_DAYS = {DateRange.TODAY: 1, DateRange.WEEK: 7, DateRange.MONTH: 30}


@dataclass(slots=True)
class ArticleFilters:
    """Active category, source, date and sort selections."""

    categories: set[str] = field(default_factory=set)
    sources: set[str] = field(default_factory=set)
    date_range: DateRange = DateRange.ALL
    sort_by: SortOrder = SortOrder.NEWEST


class SessionContext:
    """Current language, search query, filters and page for one consumer."""

    def __init__(
        self,
        *,
        language: str = "en",
        base_language: str = "en",
        target_language: str = "ar",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._language = language
        self._base_language = base_language
        self._target_language = target_language
        self._page_size = page_size
        self._page = 1
        self._search_query = ""
        self.filters = ArticleFilters()

    @property
    def language(self) -> str:
        return self._language

    @property
    def is_target_language(self) -> bool:
        return self._language == self._target_language

    @property
    def page(self) -> int:
        return self._page

    @property
    def search_query(self) -> str:
        return self._search_query

    def set_language(self, language: str) -> None:
        self._language = language

    def toggle_language(self) -> str:
        if self.is_target_language:
            self._language = self._base_language
        else:
            self._language = self._target_language
        return self._language

    def set_search_query(self, query: str) -> None:
        self._search_query = query.strip()
        self._page = 1

    def next_page(self) -> int:
        self._page += 1
        return self._page

    def reset_page(self) -> None:
        self._page = 1

    def select(self, articles: Sequence[Article], *, now: datetime) -> list[Article]:
        """Apply search, filters and sort order to an article snapshot."""

        selected = [article for article in articles if self._matches(article, now)]
        sort_by = self.filters.sort_by
        if sort_by is SortOrder.SOURCE:
            selected.sort(key=lambda article: article.source)
        else:
            selected.sort(
                key=lambda article: article.publish_date,
                reverse=sort_by is SortOrder.NEWEST,
            )
        return selected

    def visible(self, selected: Sequence[Article]) -> list[Article]:
        return list(selected[: self._page * self._page_size])

    def _matches(self, article: Article, now: datetime) -> bool:
        filters = self.filters
        if filters.categories and article.category not in filters.categories:
            return False
        if filters.sources and article.source not in filters.sources:
            return False
        days = _DATE_RANGE_DAYS.get(filters.date_range)
        if days is not None and abs(now - article.publish_date) > timedelta(days=days):
            return False
        if self._search_query:
            return self._matches_query(article)
        return True

    def _matches_query(self, article: Article) -> bool:
        query = self._search_query.lower()
        fields = [article.title, article.excerpt]
        if self.is_target_language:
            fields = [
                article.localized_title or article.title,
                article.localized_excerpt or article.excerpt,
                article.localized_category or article.category,
            ]
        fields.extend(article.tags)
        return any(query in value.lower() for value in fields)
