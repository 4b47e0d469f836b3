"""Localizes article titles and excerpts through the translation queue."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pharmacentral.ingestion.models import Article
from pharmacentral.ingestion.store import ArticleStore
from pharmacentral.translation.queue import TranslationQueue

logger = logging.getLogger(__name__)


class ArticleTranslator:
    def __init__(self, queue: TranslationQueue, store: ArticleStore) -> None:
        self._queue = queue
        self._store = store

    async def translate_article(self, article: Article, *, direct: bool = False) -> Article:
        """Fill localized fields; any failed part keeps the original text.

        ``direct`` bypasses the batch queue, which sequential mode relies on.
        """

        if article.is_localized:
            logger.debug("Article already translated: %s", article.title[:30])
            return article
        logger.info("Translating: %s", article.title[:50])
        translate = self._queue.translate_direct if direct else self._queue.translate
        title = await translate(article.title)
        excerpt = await translate(article.excerpt)
        article.localize(title=title or article.title, excerpt=excerpt or article.excerpt)
        return article

    async def translate_visible(self, articles: Sequence[Article]) -> int:
        """Sequentially localize the given articles, persisting once at the end."""

        pending = [article for article in articles if not article.is_localized]
        if not pending:
            return 0
        logger.info("Starting translation of %d visible articles", len(pending))
        await self._queue.run_sequential(pending, self._translate_direct)
        self._store.save()
        return len(pending)

    async def translate_all(self) -> int:
        """Localize every stored article through batch mode."""

        pending = [article for article in self._store.get_articles() if not article.is_localized]
        if not pending:
            return 0
        texts = [text for article in pending for text in (article.title, article.excerpt)]
        results = await self._queue.translate_many(texts)
        for index, article in enumerate(pending):
            title = results[2 * index] or article.title
            excerpt = results[2 * index + 1] or article.excerpt
            article.localize(title=title, excerpt=excerpt)
        self._store.save()
        return len(pending)

    async def _translate_direct(self, article: Article) -> Article:
        return await self.translate_article(article, direct=True)
