from .db import (
    Base,
    DatabaseGateway,
    Roadmap,
    Reminder,
    Issue,
    Theme,
    Pillar,
    Workspace,
    build_url,
)  # noqa: F401
