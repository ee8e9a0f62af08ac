"""
grpg_library/validator.py -- Whole-library schema, tag and reference checks.

The validator walks every record in the content store and collects every
defect it can find into one :class:`Report`.  It never stops early and
never raises for bad content.  Checks run per record in a fixed order:

    1. Base fields     the record against its closed JSON Schema (required
                       fields, kinds, enums, id pattern, recordType matches
                       the bucket, version bounds); unknown keys warn
    2. Tags            every tag defined, ``type:<recordType>`` present,
                       no foreign ``type:*`` tag; class primaryRoles are tags
    3. Mechanics       the schema errors that fall inside ``mechanics``
    4. References      every id resolves in its expected category;
                       asymmetric ``grantedBy`` back-links warn
    5. Choice groups   an ``_X`` group with a single candidate warns
    6. Provenance      updatedAt not before createdAt

Steps 1 and 3 share one ``jsonschema`` pass over the record; its errors are
split by whether their path lies inside ``mechanics``.

Records are visited in category declaration order, then insertion order,
and every check iterates in a deterministic order, so validating the same
store twice yields identical reports.

One defect produces one finding: a malformed field is reported by the
structural check and then skipped by the later checks that would trip
over it.

Usage::

    from grpg_library.validator import LibraryValidator

    validator = LibraryValidator(tags)
    report = validator.validate(store)
    if report.has_errors:
        print(report.format_human())
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

try:
    import jsonschema
except ImportError:
    raise ImportError(
        "The 'jsonschema' package is required but not installed. "
        "Install it with: pip install jsonschema"
    )

from grpg_library.models.attribute_mods import AttributeMods, parse_attribute_mods
from grpg_library.reference_resolver import ReferenceResolver
from grpg_library.report import Finding, FindingKind, Report
from grpg_library.schema_registry import (
    DATE_FORMAT,
    ID_PATTERN,
    TYPE_FOR_CATEGORY,
    FieldKind,
    RecordSchema,
    SchemaRegistry,
    default_registry,
)
from grpg_library.tag_dictionary import TagDictionary
from grpg_library.utils import parse_timestamp

logger = logging.getLogger(__name__)

_TYPE_NAMES = {
    "string": "a string",
    "number": "a number",
    "integer": "an integer",
    "array": "a list",
    "object": "an object",
}

_FORMAT_CHECKER = jsonschema.FormatChecker(formats=())


@_FORMAT_CHECKER.checks(DATE_FORMAT)
def _is_iso_date(value) -> bool:
    return not isinstance(value, str) or parse_timestamp(value) is not None


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "a boolean"
    if isinstance(value, str):
        return "a string"
    if isinstance(value, (int, float)):
        return "a number"
    if isinstance(value, list):
        return "a list"
    if isinstance(value, Mapping):
        return "an object"
    return type(value).__name__


def _join_path(parts) -> str:
    """``["mechanics", "innateTraits", 0]`` -> ``"mechanics.innateTraits[0]"``."""
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def _child_path(path: str, key) -> str:
    return f"{path}.{key}" if path else str(key)


class _RecordContext:
    """Per-record state shared by the checks."""

    __slots__ = ("category", "record_type", "record_id", "record", "schema", "findings")

    def __init__(self, category: str, record_id: str, record, schema: RecordSchema):
        self.category = category
        self.record_type = schema.record_type
        self.record_id = record_id
        self.record = record
        self.schema = schema
        self.findings: list[Finding] = []

    def add(self, kind: FindingKind, field: str, message: str, referenced_id: str = "") -> None:
        self.findings.append(
            Finding.of(kind, self.record_type, self.record_id, field, message, referenced_id)
        )

    def schema_error(self, field: str, message: str) -> None:
        self.add(FindingKind.SCHEMA_ERROR, field, message)

    def warning(self, field: str, message: str) -> None:
        self.add(FindingKind.CONSISTENCY_WARNING, field, message)


class LibraryValidator:
    """Validates a whole content store against the tag dictionary and schemas.

    Parameters
    ----------
    tags : TagDictionary, optional
        Tag definitions (default: :meth:`TagDictionary.default`).
    registry : SchemaRegistry, optional
        Record schemas (default: the shared registry).
    known_attributes : iterable of str, optional
        Attribute names treated as fixed mods when a record's
        ``attributeMods`` block has to be parsed here rather than taken
        from the store.
    """

    def __init__(self, tags: Optional[TagDictionary] = None,
                 registry: Optional[SchemaRegistry] = None,
                 known_attributes=None):
        self.tags = tags if tags is not None else TagDictionary.default()
        self.registry = registry or default_registry()
        self._known_attributes = known_attributes
        self._schema_validators: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, store) -> Report:
        """Run every check over every record in *store*.

        Returns
        -------
        Report
            Tag-dictionary findings first, then record findings in category
            declaration order and insertion order.
        """
        findings = self.check_tag_dictionary()
        resolver = ReferenceResolver(store)
        for category in store.categories():
            for record_id, record in store.items(category):
                findings.extend(self._check_record(category, record_id, record, store, resolver))

        report = Report(findings)
        logger.info("Validated %d records: %s", len(store), report.summary())
        return report

    def validate_record(self, category: str, record_id: str, record, store) -> list[Finding]:
        """Check one record (which need not be in *store*) against *store*."""
        return self._check_record(category, record_id, record, store, ReferenceResolver(store))

    def check_tag_dictionary(self) -> list[Finding]:
        """Findings for malformed entries of the tag dictionary itself."""
        return [
            Finding.of(FindingKind.TAG_ERROR, "tag", name, "tagName", message)
            for name, message in self.tags.check_entries()
        ]

    # ------------------------------------------------------------------
    # Per-record driver
    # ------------------------------------------------------------------

    def _check_record(self, category, record_id, record, store, resolver) -> list[Finding]:
        schema = self.registry.schema_for(self.registry.type_for(category))
        ctx = _RecordContext(category, record_id, record, schema)

        if not isinstance(record, Mapping):
            ctx.schema_error("", f"Record '{record_id}' must be an object, got {_describe(record)}.")
            return ctx.findings

        base, mechanics = self._schema_findings(ctx)
        ctx.findings.extend(base)
        self._check_identity(ctx)
        self._check_tags(ctx)
        ctx.findings.extend(mechanics)
        self._check_references(ctx, resolver)
        self._check_choice_groups(ctx, store)
        self._check_provenance(ctx)
        return ctx.findings

    # ------------------------------------------------------------------
    # 1 and 3. JSON Schema
    # ------------------------------------------------------------------

    def _schema_validator(self, record_type: str):
        validator = self._schema_validators.get(record_type)
        if validator is None:
            validator = jsonschema.Draft202012Validator(
                self.registry.json_schema(record_type, closed=True),
                format_checker=_FORMAT_CHECKER,
            )
            self._schema_validators[record_type] = validator
        return validator

    def _schema_findings(self, ctx: _RecordContext) -> tuple[list[Finding], list[Finding]]:
        """Run the closed schema over the record.

        Returns ``(base_findings, mechanics_findings)``.
        """
        record = ctx.record
        if "recordType" in record and "type" in record:
            # recordType wins; a disagreeing legacy key is reported separately.
            record = {k: v for k, v in record.items() if k != "type"}

        scratch = _RecordContext(ctx.category, ctx.record_id, ctx.record, ctx.schema)
        seen: set[tuple[str, str]] = set()
        for error in self._schema_validator(ctx.record_type).iter_errors(record):
            self._humanize_error(scratch, error, seen)

        base, mechanics = [], []
        for finding in scratch.findings:
            in_mechanics = finding.field == "mechanics" or finding.field.startswith(
                ("mechanics.", "mechanics["))
            (mechanics if in_mechanics else base).append(finding)
        return base, mechanics

    @staticmethod
    def _humanize_error(ctx: _RecordContext, error, seen: set) -> None:
        """Turn one ``jsonschema.ValidationError`` into findings on *ctx*."""
        path = _join_path(error.absolute_path)
        keyword = error.validator
        value = error.instance

        if keyword == "required":
            # jsonschema reports each missing property separately.
            for name in error.validator_value:
                field = _child_path(path, name)
                if name in value or (field, "required") in seen:
                    continue
                seen.add((field, "required"))
                ctx.schema_error(field, f"'{field}' is required but missing.")
            return

        if keyword == "anyOf" and not path:
            ctx.schema_error("recordType", "'recordType' is required but missing.")
            return

        if keyword == "additionalProperties" and error.validator_value is False:
            known = error.schema.get("properties", {})
            for key in value:
                if key in known:
                    continue
                if path:
                    ctx.warning(_child_path(path, key),
                                f"'{key}' is not a recognized field of {path} "
                                f"for {ctx.record_type} records.")
                else:
                    ctx.warning(str(key),
                                f"'{key}' is not a recognized field for "
                                f"{ctx.record_type} records.")
            return

        if keyword == "const" and path in ("recordType", "type"):
            ctx.schema_error(
                "recordType",
                f"recordType is '{value}' but the record is stored under "
                f"'{ctx.category}', which holds '{ctx.record_type}' records.",
            )
            return

        if keyword == "type":
            if "minLength" in error.schema:
                message = f"'{path}' must be a non-empty id string."
            elif error.schema.get("format") == DATE_FORMAT:
                message = f"'{path}' must be an ISO-8601 date string, got {_describe(value)}."
            else:
                expected = error.validator_value
                if isinstance(expected, str):
                    expected = [expected]
                names = " or ".join(_TYPE_NAMES.get(t, t) for t in expected)
                message = f"'{path}' must be {names}, got {_describe(value)}."
        elif keyword == "enum":
            allowed = ", ".join(str(v) for v in error.validator_value)
            message = f"'{path}' must be one of {allowed}; got {value!r}."
        elif keyword == "pattern" and error.validator_value == ID_PATTERN.pattern:
            message = (f"{path} '{value}' must be lowercase letters and digits separated "
                       f"by single dashes (e.g. 'race-tettari').")
        elif keyword == "pattern":
            message = f"'{path}' must not be empty."
        elif keyword == "minLength":
            message = f"'{path}' must be a non-empty id string."
        elif keyword == "minimum":
            bound = error.validator_value
            if bound == 0:
                message = f"{path} must not be negative, got {value}."
            else:
                message = f"{path} must be at least {bound:g}, got {value}."
        elif keyword == "format":
            message = f"'{path}' is not a valid ISO-8601 date: {value!r}."
        else:
            message = f"Issue at '{path or '(root)'}': {error.message}"
        ctx.schema_error(path, message)

    def _check_identity(self, ctx: _RecordContext) -> None:
        """Checks the schema cannot express: the id matches its store key and
        a legacy ``type`` agrees with ``recordType``."""
        record = ctx.record
        value = record.get("id")
        if isinstance(value, str) and ID_PATTERN.match(value) and value != ctx.record_id:
            ctx.schema_error(
                "id",
                f"id '{value}' does not match the key '{ctx.record_id}' it is stored under.",
            )

        if "recordType" in record and "type" in record:
            declared, legacy = record["recordType"], record["type"]
            if declared == ctx.record_type and legacy != declared:
                ctx.schema_error(
                    "recordType",
                    f"recordType is '{declared}' but the legacy 'type' key says "
                    f"{legacy!r}; remove 'type' or make them agree.",
                )

    # ------------------------------------------------------------------
    # 2. Tags
    # ------------------------------------------------------------------

    def _check_tags(self, ctx: _RecordContext) -> None:
        tags = ctx.record.get("tags")
        if not isinstance(tags, list):
            return

        own_type_tag = f"type:{ctx.record_type}"
        seen: set[str] = set()
        for tag in tags:
            if not isinstance(tag, str) or tag in seen:
                continue
            seen.add(tag)
            if tag not in self.tags:
                ctx.add(FindingKind.TAG_ERROR, "tags",
                        f"Tag '{tag}' is not defined in the tag dictionary.", tag)
            elif tag.startswith("type:") and tag != own_type_tag:
                ctx.add(FindingKind.TAG_ERROR, "tags",
                        f"Tag '{tag}' contradicts the record's type '{ctx.record_type}'.", tag)
        if own_type_tag not in seen:
            ctx.add(FindingKind.TAG_ERROR, "tags",
                    f"Missing the mandatory tag '{own_type_tag}'.", own_type_tag)

        mechanics = ctx.record.get("mechanics")
        if not isinstance(mechanics, Mapping):
            return
        for spec in ctx.schema.mechanics_fields:
            if spec.kind != FieldKind.LIST_OF_TAGS:
                continue
            values = mechanics.get(spec.name)
            if not isinstance(values, list):
                continue
            path = f"mechanics.{spec.name}"
            for tag in dict.fromkeys(v for v in values if isinstance(v, str)):
                if tag not in self.tags:
                    ctx.add(FindingKind.TAG_ERROR, path,
                            f"'{path}' lists '{tag}', which is not defined in the tag dictionary.",
                            tag)

    # ------------------------------------------------------------------
    # 4. References
    # ------------------------------------------------------------------

    def _check_references(self, ctx: _RecordContext, resolver: ReferenceResolver) -> None:
        for ref in self.registry.extract_references(ctx.record, ctx.schema):
            resolution = resolver.resolve_one(ref.target_id, ref.expected_category)
            if resolution.found:
                continue
            expected = TYPE_FOR_CATEGORY.get(ref.expected_category, ref.expected_category)
            if resolution.actual_category:
                actual = TYPE_FOR_CATEGORY[resolution.actual_category]
                detail = f"but '{ref.target_id}' is a {actual}, not a {expected}"
            else:
                detail = f"but no {expected} with that id exists"
            ctx.add(
                FindingKind.REFERENCE_ERROR,
                ref.field,
                f"'{ctx.record_id}' references '{ref.target_id}' in field "
                f"'{ref.field}', {detail}.",
                ref.target_id,
            )

        if ctx.schema.field("grantedBy") is None:
            return
        check = resolver.check_granted_by(ctx.record_id, ctx.record.get("grantedBy"))
        if check is not None and check.asymmetric:
            fields = " or ".join(f"mechanics.{name}" for name in check.back_link_fields)
            ctx.add(
                FindingKind.CONSISTENCY_WARNING,
                "grantedBy",
                f"'{ctx.record_id}' says it is granted by {check.owner_type} "
                f"'{check.owner_id}', but '{check.owner_id}' does not list it in {fields}.",
                check.owner_id,
            )

    # ------------------------------------------------------------------
    # 5. Choice groups
    # ------------------------------------------------------------------

    def _attribute_mods(self, ctx: _RecordContext, store) -> Optional[AttributeMods]:
        mechanics = ctx.record.get("mechanics")
        mods = mechanics.get("attributeMods") if isinstance(mechanics, Mapping) else None
        if not isinstance(mods, Mapping):
            return None
        if store.has(ctx.category, ctx.record_id) and \
                store.get(ctx.category, ctx.record_id) is ctx.record:
            parsed = store.attribute_mods(ctx.category, ctx.record_id)
            if parsed is not None:
                return parsed
        if self._known_attributes is not None:
            return parse_attribute_mods(mods, self._known_attributes)
        return parse_attribute_mods(mods)

    def _check_choice_groups(self, ctx: _RecordContext, store) -> None:
        mods = self._attribute_mods(ctx, store)
        if mods is None:
            return
        for group in mods.undersized_groups():
            keys = ", ".join(f"'{k}'" for k in mods.choice_keys[group])
            ctx.warning(
                "mechanics.attributeMods",
                f"Choice group '{group}' has a single candidate ({keys}); "
                f"a choose-one group needs at least two.",
            )

    # ------------------------------------------------------------------
    # 6. Provenance
    # ------------------------------------------------------------------

    def _check_provenance(self, ctx: _RecordContext) -> None:
        created = parse_timestamp(ctx.record.get("createdAt"))
        updated = parse_timestamp(ctx.record.get("updatedAt"))
        if created is not None and updated is not None and updated < created:
            ctx.warning(
                "updatedAt",
                f"updatedAt ({ctx.record['updatedAt']}) is earlier than "
                f"createdAt ({ctx.record['createdAt']}).",
            )
