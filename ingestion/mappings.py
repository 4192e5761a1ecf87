"""
Curated module -> vulnerability mappings loaded from a JSON file.

File format:
    [
        {"module_id": 17, "vulnerability_ids": [3, 8]},
        ...
    ]

Mappings are checked against the ids already present in the catalog before
any edge is written. A mapping that references an unknown module or an
unknown vulnerability is reported and left out entirely.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Set, Tuple, Union
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from core.exceptions import MappingFileError
import logging

logger = logging.getLogger(__name__)


class ModuleVulnerabilityMapping(BaseModel):
    module_id: int
    vulnerability_ids: List[int] = Field(default_factory=list)


def load_mappings(file_path: Union[str, Path]) -> List[ModuleVulnerabilityMapping]:
    """
    Read and validate the mappings file.

    Raises:
        MappingFileError: File missing, not JSON, or not a list of mappings
    """
    path = Path(file_path)
    context = {"file_path": str(path)}

    if not path.exists():
        raise MappingFileError(f"Mappings file not found: {path}", context=context)

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise MappingFileError(
            f"Could not read mappings file {path}",
            context=context,
            original_exception=e
        )

    if not isinstance(payload, list):
        raise MappingFileError(
            "Mappings file must contain a JSON array",
            context={**context, "found_type": type(payload).__name__}
        )

    try:
        mappings = [ModuleVulnerabilityMapping.parse_obj(entry) for entry in payload]
    except PydanticValidationError as e:
        raise MappingFileError(
            "Invalid mapping entry",
            context={**context, "validation_errors": e.errors()},
            original_exception=e
        )

    logger.info(f"Loaded {len(mappings)} module-vulnerability mappings from {path}")
    return mappings


@dataclass
class MappingValidationReport:
    """Outcome of checking mappings against the stored catalog"""

    valid: List[ModuleVulnerabilityMapping] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total_mappings: int = 0
    total_modules: int = 0
    total_vulnerabilities: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def relationship_count(self) -> int:
        return sum(len(m.vulnerability_ids) for m in self.valid)

    @property
    def module_coverage(self) -> float:
        """Percentage of stored modules with at least one valid mapping"""
        if not self.total_modules:
            return 0.0
        mapped = {m.module_id for m in self.valid}
        return 100.0 * len(mapped) / self.total_modules

    @property
    def vulnerability_coverage(self) -> float:
        """Percentage of stored vulnerabilities referenced by a valid mapping"""
        if not self.total_vulnerabilities:
            return 0.0
        mapped = {vid for m in self.valid for vid in m.vulnerability_ids}
        return 100.0 * len(mapped) / self.total_vulnerabilities

    def pairs(self) -> Iterator[Tuple[int, int]]:
        """(module_id, vulnerability_id) for every valid relationship"""
        for mapping in self.valid:
            for vulnerability_id in dict.fromkeys(mapping.vulnerability_ids):
                yield mapping.module_id, vulnerability_id

    def summary_lines(self) -> List[str]:
        return [
            f"Mappings in file:        {self.total_mappings}",
            f"Valid mappings:          {len(self.valid)}",
            f"Relationships:           {self.relationship_count}",
            f"Invalid references:      {len(self.errors)}",
            f"Module coverage:         {self.module_coverage:.1f}% of {self.total_modules}",
            f"Vulnerability coverage:  {self.vulnerability_coverage:.1f}% of {self.total_vulnerabilities}",
        ]


def validate_mappings(
    mappings: List[ModuleVulnerabilityMapping],
    module_ids: Iterable[int],
    vulnerability_ids: Iterable[int]
) -> MappingValidationReport:
    """Keep only the mappings whose module and vulnerabilities all exist"""
    known_modules: Set[int] = set(module_ids)
    known_vulnerabilities: Set[int] = set(vulnerability_ids)

    report = MappingValidationReport(
        total_mappings=len(mappings),
        total_modules=len(known_modules),
        total_vulnerabilities=len(known_vulnerabilities)
    )

    for mapping in mappings:
        problems = []
        if mapping.module_id not in known_modules:
            problems.append(f"Module {mapping.module_id} does not exist")
        for vulnerability_id in mapping.vulnerability_ids:
            if vulnerability_id not in known_vulnerabilities:
                problems.append(
                    f"Vulnerability {vulnerability_id} (module {mapping.module_id}) does not exist"
                )

        if problems:
            report.errors.extend(problems)
        else:
            report.valid.append(mapping)

    return report
