from __future__ import annotations

from dataclasses import replace

from ..models.config_models import EngineConfig
from ..models.schema_models import (
    EntitySchema,
    FieldKind,
    FieldSpec,
    NameSplit,
    ReferenceFieldSpec,
)
from .loader import ConfigError

"""Built-in entity descriptors: employees, assets, SIM cards.

Header synonyms mirror the spellings found in the hand-authored spreadsheets
these imports are fed with. Extra spellings can be added per entity through the
``synonyms`` section of config/import.yml.
"""

__all__ = [
    "EMPLOYEES",
    "ASSETS",
    "SIM_CARDS",
    "ENTITY_SCHEMAS",
    "get_entity_schema",
]

_SIM_STATUSES = ("active", "inactive", "suspended", "expired")

EMPLOYEES = EntitySchema(
    name="employees",
    fields=(
        FieldSpec("code", required=True,
                  synonyms=("employee_code", "employee code", "employee_id", "employee id", "emp_code")),
        FieldSpec("name", required=True,
                  synonyms=("full_name", "full name", "employee_name", "employee name")),
        FieldSpec("email", FieldKind.EMAIL, synonyms=("email_address", "email address", "e-mail")),
        FieldSpec("mobile_number", synonyms=("mobile", "phone", "phone_number", "mobile number")),
        FieldSpec("id_number", synonyms=("id number", "national_id", "iqama")),
        FieldSpec("joining_date", FieldKind.DATE,
                  synonyms=("join_date", "joining date", "start_date", "start date")),
        FieldSpec("status", FieldKind.LOWER, default="active"),
        FieldSpec("department", synonyms=("dept", "department_name")),
        FieldSpec("sub_department", synonyms=("subdept", "sub_dept", "sub department", "sub-department")),
        FieldSpec("position", synonyms=("job_title", "job title", "title", "designation")),
        FieldSpec("category", synonyms=("emp_category", "employee_category", "employee category")),
        FieldSpec("nationality", synonyms=("country",)),
        FieldSpec("company", synonyms=("sponsor", "sponsorship")),
        FieldSpec("project", synonyms=("project_name", "project name")),
        FieldSpec("cost_center", synonyms=("costcenter", "cost center", "cost_centre")),
    ),
    references=(
        ReferenceFieldSpec("department", "departments", "department_id", "Department"),
        ReferenceFieldSpec("sub_department", "sub_departments", "sub_department_id", "Sub-Department",
                           parent_field="department"),
        ReferenceFieldSpec("position", "positions", "position_id", "Position"),
        ReferenceFieldSpec("category", "categories", "category_id", "Employee Category"),
        ReferenceFieldSpec("nationality", "nationalities", "nationality_id", "Nationality"),
        ReferenceFieldSpec("company", "companies", "company_id", "Company"),
        ReferenceFieldSpec("project", "projects", "project_id", "Project"),
        ReferenceFieldSpec("cost_center", "cost_centers", "cost_center_id", "Cost Center"),
    ),
    natural_key=("code",),
    name_split=NameSplit("name"),
)

ASSETS = EntitySchema(
    name="assets",
    fields=(
        FieldSpec("asset_tag", required=True, synonyms=("asset tag", "tag", "asset_no")),
        FieldSpec("asset_name", required=True, synonyms=("asset name", "name")),
        FieldSpec("item_category", required=True, synonyms=("item category", "category")),
        FieldSpec("item", required=True, synonyms=("item_name", "item name")),
        FieldSpec("serial_no", FieldKind.NUMBER_TEXT,
                  synonyms=("serial", "serial no", "serial_number", "serial number")),
        FieldSpec("assigned_to", synonyms=("assigned to", "assigned", "employee_code")),
        FieldSpec("condition", FieldKind.LOWER, default="excellent"),
        FieldSpec("project", synonyms=("project_name", "project name")),
    ),
    references=(
        ReferenceFieldSpec("item_category", "item_categories", "item_category_id", "Item Category"),
        ReferenceFieldSpec("item", "items", "item_id", "Item", parent_field="item_category"),
        ReferenceFieldSpec("assigned_to", "employees", "assigned_to", "Employee", create_missing=False),
        ReferenceFieldSpec("project", "projects", "project_id", "Project", create_missing=False),
    ),
    natural_key=("asset_tag",),
)

SIM_CARDS = EntitySchema(
    name="sim_cards",
    fields=(
        FieldSpec("sim_account_no", FieldKind.NUMBER_TEXT, required=True,
                  synonyms=("sim account no", "account no", "account_no")),
        FieldSpec("sim_service_no", FieldKind.NUMBER_TEXT, required=True,
                  synonyms=("sim service no", "service no", "service_no")),
        FieldSpec("sim_start_date", FieldKind.DATE,
                  synonyms=("sim start date", "start date", "start_date")),
        FieldSpec("sim_type", synonyms=("sim type", "type")),
        FieldSpec("sim_provider", synonyms=("sim provider", "provider")),
        FieldSpec("sim_card_plan", synonyms=("sim card plan", "card plan", "card_plan", "plan")),
        FieldSpec("sim_status", FieldKind.LOWER, default="active", allowed_values=_SIM_STATUSES,
                  synonyms=("sim status", "status")),
        FieldSpec("sim_serial_no", FieldKind.NUMBER_TEXT, pattern=r"\d{10,20}",
                  pattern_message="Invalid serial number format",
                  synonyms=("sim serial no", "serial no", "serial_no")),
        FieldSpec("assigned_to", synonyms=("assigned to", "assigned")),
        FieldSpec("project", synonyms=("project_name", "project name")),
    ),
    references=(
        ReferenceFieldSpec("sim_type", "sim_types", "sim_type_id", "SIM Type"),
        ReferenceFieldSpec("sim_provider", "sim_providers", "sim_provider_id", "SIM Provider"),
        ReferenceFieldSpec("sim_card_plan", "sim_card_plans", "sim_card_plan_id", "SIM Card Plan"),
        ReferenceFieldSpec("assigned_to", "employees", "assigned_to", "Employee", create_missing=False),
        ReferenceFieldSpec("project", "projects", "project_id", "Project",
                           create_missing=False, partial_match=True),
    ),
    natural_key=("sim_account_no", "sim_service_no"),
)

ENTITY_SCHEMAS: dict[str, EntitySchema] = {
    schema.name: schema for schema in (EMPLOYEES, ASSETS, SIM_CARDS)
}


def get_entity_schema(name: str, config: EngineConfig | None = None) -> EntitySchema:
    """Return the descriptor for ``name`` with configured synonyms merged in.

    Raises:
        ConfigError: unknown entity name, or synonyms configured for a field the
            entity does not have.
    """
    key = name.strip().lower().replace("-", "_")
    schema = ENTITY_SCHEMAS.get(key)
    if schema is None:
        raise ConfigError(
            f"unknown entity '{name}' (expected one of: {', '.join(sorted(ENTITY_SCHEMAS))})"
        )
    if config is None or not config.synonyms.get(key):
        return schema
    extra = config.synonyms[key]
    unknown = sorted(f for f in extra if schema.field_spec(f) is None)
    if unknown:
        raise ConfigError(f"synonyms configured for unknown {key} fields: {unknown}")
    return replace(schema, extra_synonyms={f: tuple(s.lower() for s in v) for f, v in extra.items()})
