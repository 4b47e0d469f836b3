"""Default source registry and relay cascade."""

from __future__ import annotations

from pharmacentral.ingestion.models import Relay, ResponseShape, Source

DEFAULT_SOURCES: tuple[Source, ...] = (
    Source(
        name="FiercePharma",
        localized_name="فييرس فارما",
        url="https://www.fiercepharma.com/rss/xml",
        category="Pharma News",
        localized_category="أخبار الأدوية",
    ),
    Source(
        name="BioPharma Dive",
        localized_name="بايو فارما دايف",
        url="https://www.biopharmadive.com/feeds/news/",
        category="Biotechnology",
        localized_category="التكنولوجيا الحيوية",
    ),
    Source(
        name="STAT Pharma",
        localized_name="ستات فارما",
        url="https://www.statnews.com/category/pharma/feed/",
        category="Medical News",
        localized_category="الأخبار الطبية",
    ),
    Source(
        name="PharmaTimes",
        localized_name="فارما تايمز",
        url="https://www.pharmatimes.com/feed",
        category="Industry News",
        localized_category="أخبار الصناعة",
    ),
    Source(
        name="Medical Xpress",
        localized_name="ميديكال إكسبريس",
        url="https://medicalxpress.com/rss-feed/",
        category="Medical Research",
        localized_category="البحوث الطبية",
    ),
    Source(
        name="Medical Daily",
        localized_name="ميديكال ديلي",
        url="https://www.medicaldaily.com/rss",
        category="Health News",
        localized_category="الأخبار الصحية",
    ),
    Source(
        name="World Pharma News",
        localized_name="أخبار الأدوية العالمية",
        url="https://www.worldpharmanews.com/?format=feed",
        category="Global Pharma",
        localized_category="الأدوية العالمية",
    ),
    Source(
        name="MedlinePlus",
        localized_name="ميدلاين بلس",
        url="https://medlineplus.gov/groupfeeds/new.xml",
        category="Health Information",
        localized_category="المعلومات الصحية",
    ),
    Source(
        name="FDA Law Blog",
        localized_name="مدونة قانون إدارة الغذاء والدواء",
        url="https://www.thefdalawblog.com/feed",
        category="Regulatory",
        localized_category="تنظيمي",
    ),
)

# Order defines trial precedence.
DEFAULT_RELAYS: tuple[Relay, ...] = (
    Relay(
        url_template="https://api.rss2json.com/v1/api.json?rss_url={url}",
        shape=ResponseShape.STRUCTURED,
        description="RSS2JSON API",
    ),
    Relay(
        url_template="https://corsproxy.io/?url={url}",
        shape=ResponseShape.RAW,
        description="CORS Proxy IO",
    ),
    Relay(
        url_template="https://api.allorigins.win/get?url={url}",
        shape=ResponseShape.RAW,
        description="AllOrigins API",
        envelope_field="contents",
    ),
)


