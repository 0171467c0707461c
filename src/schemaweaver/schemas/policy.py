"""Ambiguity Policy for fields that fall back to the untyped Mixed type."""

import logging

from schemaweaver.config import Severity
from schemaweaver.errors import MixedNotAllowedError
from schemaweaver.metadata.store import MetadataStore

logger = logging.getLogger(__name__)


class AmbiguityPolicy:
    """Applies the allow_mixed severity of a class.

    The class's own (or inherited) ``allow_mixed`` wins; without one the
    global option applies, and without that WARN.
    """

    def __init__(self, store: MetadataStore):
        self.store = store

    def severity_for(self, cls: type) -> Severity:
        severity = self.store.get_allow_mixed(cls)
        return Severity.WARN if severity is None else severity

    def warn_mixed(self, cls: type, key: str) -> None:
        """Handle a fallback to Mixed for field ``key`` of ``cls``.

        Raises:
            MixedNotAllowedError: If the severity is ERROR
        """
        name = self.store.get_name(cls)
        severity = self.severity_for(cls)

        if severity == Severity.ERROR:
            raise MixedNotAllowedError(name, key)
        if severity == Severity.WARN:
            logger.warning(
                'Setting "Mixed" for field "%s.%s" (set allow_mixed to ALLOW to silence this)',
                name,
                key,
            )
