from __future__ import annotations

from dataclasses import dataclass, field

from .state_schema import ActorRole, SessionContext, StageId


@dataclass(frozen=True, slots=True)
class ImportTarget:
    """Bulk import endpoint and template hints for an upload stage."""

    path: str
    template_path: str
    required_columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Stage:
    id: StageId
    label: str
    icon: str
    order: int
    skipped_for: frozenset[ActorRole] = field(default_factory=frozenset)
    import_target: ImportTarget | None = None

    def is_applicable(self, context: SessionContext) -> bool:
        return context.actor_role not in self.skipped_for

    @property
    def accepts_uploads(self) -> bool:
        return self.import_target is not None


STAGES: tuple[Stage, ...] = (
    Stage(
        id=StageId.MANUFACTURER,
        label="Manufacturer Info",
        icon="🏢",
        order=10,
        skipped_for=frozenset({ActorRole.ORG_ADMIN}),
    ),
    Stage(id=StageId.TEAM, label="Team Members", icon="👥", order=20),
    Stage(
        id=StageId.EQUIPMENT,
        label="Equipment Catalog",
        icon="🔧",
        order=30,
        import_target=ImportTarget(
            path="/v1/equipment/catalog/import",
            template_path="/templates/equipment-catalog-template.csv",
            required_columns=("product_code", "product_name", "manufacturer_name", "model_number", "category"),
        ),
    ),
    Stage(
        id=StageId.PARTS,
        label="Parts Catalog",
        icon="📦",
        order=40,
        import_target=ImportTarget(
            path="/v1/parts/import",
            template_path="/templates/parts-catalog-template.csv",
            required_columns=("part_number", "part_name", "category", "part_type"),
        ),
    ),
    Stage(
        id=StageId.ENGINEERS,
        label="Service Engineers",
        icon="👷",
        order=50,
        import_target=ImportTarget(
            path="/v1/engineers/import",
            template_path="/templates/engineers-template.csv",
            required_columns=(
                "name",
                "phone",
                "email",
                "location",
                "engineer_level",
                "equipment_types",
                "experience_years",
            ),
        ),
    ),
    Stage(
        id=StageId.INSTALLATIONS,
        label="Equipment Installations",
        icon="📋",
        order=60,
        import_target=ImportTarget(
            path="/v1/equipment/import",
            template_path="/templates/installations-template.csv",
            required_columns=("serial_number", "equipment_name", "customer_name", "installation_date"),
        ),
    ),
    Stage(id=StageId.REVIEW, label="Review & Complete", icon="✅", order=70),
)


class StepCatalog:
    """Static, ordered definition of the onboarding stages."""

    def __init__(self, stages: tuple[Stage, ...] = STAGES):
        orders = [s.order for s in stages]
        if any(b <= a for a, b in zip(orders, orders[1:])):
            raise ValueError("Stage order values must be strictly increasing")
        ids = [s.id for s in stages]
        if len(set(ids)) != len(ids):
            raise ValueError("Stage ids must be unique")
        self.stages = stages
        self._by_id = {s.id: s for s in stages}

    def get(self, stage_id: StageId | str) -> Stage:
        return self._by_id[StageId(stage_id)]

    def applicable_stages(self, context: SessionContext) -> list[Stage]:
        return sorted(
            (s for s in self.stages if s.is_applicable(context)),
            key=lambda s: s.order,
        )
