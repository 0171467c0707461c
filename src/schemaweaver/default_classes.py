"""Ready-made base classes for common model options."""

import datetime

from schemaweaver.metadata.decorators import model_options


@model_options(schema_options={"timestamps": True})
class TimeStamps:
    """Base class for models whose ``created_at``/``updated_at`` the engine maintains.

    The attributes are only annotated, not declared with ``prop``: the
    ``timestamps`` schema option makes the engine add them.
    """

    created_at: datetime.datetime | None
    updated_at: datetime.datetime | None
