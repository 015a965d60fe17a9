"""In-memory directory of Swimlane applications and their fields.

The directory answers three questions during a search: which app id a
configured application name refers to, what an app id's name and acronym
are, and what a field id is called and where it sits on the app layout.
It is rebuilt in full from the ``/api/app`` payload and never patched.
"""

from typing import Any, Iterable, Mapping

from .layout import LayoutPath, LayoutResolver, parse_layout
from .errors import ConfigurationError
from .logging import get_context_logger
from .models import Application, FieldInfo

logger = get_context_logger(__name__)


class AppDirectory:
    """Application and field metadata for one Swimlane instance.

    Attributes:
        instance_id: URL of the instance the directory was built for
        is_caching: True while a rebuild is in flight
        caching_failed: True if the last rebuild did not complete
        generation: Incremented on every rebuild; stale rebuilds compare against it
    """

    def __init__(self):
        self.instance_id: str | None = None
        self.is_caching = False
        self.generation = 0
        self.caching_failed = False
        self._apps: dict[str, Application] = {}
        self._app_ids_by_name: dict[str, str] = {}
        self._fields: dict[str, dict[str, FieldInfo]] = {}
        self._field_ids_by_name: dict[str, dict[str, str]] = {}

    # =========================
    # Rebuild lifecycle
    # =========================

    def needs_reload(self, url: str) -> bool:
        """Whether the directory must be rebuilt to serve ``url``."""
        return self.instance_id is None or self.instance_id != url or self.caching_failed

    def begin_rebuild(self, url: str) -> int:
        """Clear all state and mark a rebuild for ``url`` as in flight.

        Returns:
            The generation number identifying this rebuild
        """
        self.reset()
        self.generation += 1
        self.instance_id = url
        self.is_caching = True
        self.caching_failed = False
        return self.generation

    def finish_rebuild(self, success: bool) -> None:
        self.is_caching = False
        self.caching_failed = not success

    def reset(self) -> None:
        self._apps.clear()
        self._app_ids_by_name.clear()
        self._fields.clear()
        self._field_ids_by_name.clear()

    def load(self, apps: Iterable[Mapping[str, Any]]) -> None:
        """Populate the directory from the raw ``/api/app`` payload."""
        for raw_app in apps:
            app = Application(
                id=raw_app["id"],
                name=raw_app["name"],
                acronym=raw_app.get("acronym") or "",
            )
            self._apps[app.id] = app
            self._app_ids_by_name[app.name.lower()] = app.id

            for raw_field in raw_app.get("fields") or []:
                self.set_field_name(app.id, raw_field["id"], raw_field.get("name"))

            self._resolve_layout(app.id, raw_app.get("layout"))

        logger.debug(
            f"Loaded {len(self._apps)} applications",
            extra={"field_count": self.field_count},
        )

    def _resolve_layout(self, app_id: str, raw_layout: Any) -> None:
        resolver = LayoutResolver(lambda field_id: self.get_field_name(app_id, field_id))
        for field_id, path in resolver.resolve(parse_layout(raw_layout)).items():
            self.set_layout_path(app_id, field_id, path)

    # =========================
    # Writers
    # =========================

    def set_field_name(self, app_id: str, field_id: str, field_name: str | None) -> None:
        field = self._fields.setdefault(app_id, {}).get(field_id)
        if field is None:
            self._fields[app_id][field_id] = FieldInfo(field_id=field_id, field_name=field_name)
        else:
            field.field_name = field_name
        if field_name:
            self._field_ids_by_name.setdefault(app_id, {})[field_name.lower()] = field_id

    def set_layout_path(self, app_id: str, field_id: str, layout_path: LayoutPath) -> None:
        field = self._fields.setdefault(app_id, {}).get(field_id)
        if field is None:
            self._fields[app_id][field_id] = FieldInfo(field_id=field_id, layout_path=layout_path)
        else:
            field.layout_path = layout_path

    # =========================
    # Readers
    # =========================

    def get_app(self, app_id: str) -> Application | None:
        return self._apps.get(app_id)

    def get_app_id(self, app_name: str) -> str | None:
        """Case-insensitive lookup of an application id by name."""
        return self._app_ids_by_name.get(app_name.strip().lower())

    def resolve_app_ids(self, app_names: Iterable[str]) -> list[str]:
        """Map application names to ids, case-insensitively.

        Raises:
            ConfigurationError: If a name is unknown or no names are given
        """
        app_ids = []
        for app_name in app_names:
            app_id = self.get_app_id(app_name)
            if app_id is None:
                known = ", ".join(self.app_names) or "none"
                raise ConfigurationError(
                    f"The Application [{app_name.strip()}] could not be found. "
                    f"Available applications: {known}"
                )
            app_ids.append(app_id)

        if not app_ids:
            raise ConfigurationError("You must specify a valid application name")
        return app_ids

    def get_field(self, app_id: str, field_id: str) -> FieldInfo | None:
        app_fields = self._fields.get(app_id)
        if app_fields is None:
            return None
        return app_fields.get(field_id)

    def get_field_name(self, app_id: str, field_id: str) -> str | None:
        field = self.get_field(app_id, field_id)
        return field.field_name if field else None

    def get_layout_path(self, app_id: str, field_id: str) -> LayoutPath | None:
        field = self.get_field(app_id, field_id)
        return field.layout_path if field else None

    def find_field_id(self, app_id: str, field_name: str) -> str | None:
        """Reverse lookup of a field id by (case-insensitive) field name."""
        return self._field_ids_by_name.get(app_id, {}).get(field_name.strip().lower())

    @property
    def apps(self) -> list[Application]:
        return list(self._apps.values())

    @property
    def app_names(self) -> list[str]:
        return sorted(app.name for app in self._apps.values())

    @property
    def field_count(self) -> int:
        return sum(len(fields) for fields in self._fields.values())
