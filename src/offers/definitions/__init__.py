"""Built-in offer definitions."""

from .home_estimate import HOME_ESTIMATE_OFFER
from .landing_page import LANDING_PAGE_OFFER
from .pdf import PDF_OFFER
from .timeline import TIMELINE_OFFER
from .video import VIDEO_OFFER

BUILTIN_OFFERS = (
    TIMELINE_OFFER,
    PDF_OFFER,
    VIDEO_OFFER,
    HOME_ESTIMATE_OFFER,
    LANDING_PAGE_OFFER,
)
