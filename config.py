"""
Configuration for face triangulation.

Defines the failure policy, numeric kernel and diagnostic output.
"""

from dataclasses import dataclass
import json
from pathlib import Path


# Failure policies for faces that cannot be triangulated
ON_DEGENERATE_POLICIES = ("abort", "skip")

# Names accepted by kernel.get_kernel()
KERNEL_NAMES = ("float", "numpy")

# Settings file stored next to a mesh
CONFIG_SUFFIX = ".facetri.json"


@dataclass
class TriangulationConfig:
    """
    Configuration for triangulate_faces().

    Attributes:
        on_degenerate: "abort" raises on the first face that cannot be
            triangulated; "skip" leaves such faces untouched and continues
        kernel: Numeric kernel used when none is passed explicitly
        normal_epsilon: Relative vector-area threshold below which a face
            counts as degenerate
        debug: Print per-face progress
    """
    # Failure policy
    on_degenerate: str = "abort"

    # Numerics
    kernel: str = "float"
    normal_epsilon: float = 1e-12

    # Diagnostics
    debug: bool = False

    def validate(self) -> list[str]:
        """
        Validate configuration values.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if self.on_degenerate not in ON_DEGENERATE_POLICIES:
            errors.append(
                f"on_degenerate must be one of {ON_DEGENERATE_POLICIES}, got {self.on_degenerate!r}"
            )

        if self.kernel not in KERNEL_NAMES:
            errors.append(f"kernel must be one of {KERNEL_NAMES}, got {self.kernel!r}")

        if self.normal_epsilon < 0:
            errors.append(f"normal_epsilon cannot be negative, got {self.normal_epsilon}")
        if self.normal_epsilon >= 1:
            errors.append(f"normal_epsilon {self.normal_epsilon} would reject every face")

        return errors

    @property
    def skip_degenerate(self) -> bool:
        return self.on_degenerate == "skip"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "on_degenerate": self.on_degenerate,
            "kernel": self.kernel,
            "normal_epsilon": self.normal_epsilon,
            "debug": self.debug,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TriangulationConfig":
        """Create from dictionary."""
        # Older files stored the policy as a boolean
        if "skip_degenerate" in data and "on_degenerate" not in data:
            on_degenerate = "skip" if data["skip_degenerate"] else "abort"
        else:
            on_degenerate = data.get("on_degenerate", "abort")

        return cls(
            on_degenerate=on_degenerate,
            kernel=data.get("kernel", "float"),
            normal_epsilon=data.get("normal_epsilon", 1e-12),
            debug=data.get("debug", False),
        )

    def save(self, filepath: Path | str) -> None:
        """Write every setting to a JSON file, replacing its contents."""
        Path(filepath).write_text(json.dumps(self.to_dict(), indent=2) + "\n")

    @classmethod
    def load(cls, filepath: Path | str) -> "TriangulationConfig":
        """
        Read settings written by save().

        A missing file gives the defaults, so a mesh without settings runs
        with the abort policy and the float kernel. Values are not validated
        here; callers run validate() after applying their own overrides.

        Raises:
            ValueError: if the file is not a JSON object
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            return cls()

        try:
            data = json.loads(filepath.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid triangulation config {filepath}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid triangulation config {filepath}: expected a JSON object")
        return cls.from_dict(data)

    @staticmethod
    def path_for_mesh(mesh_filepath: Path | str) -> Path:
        """Settings file kept beside a mesh: part.off -> part.facetri.json."""
        mesh_path = Path(mesh_filepath)
        return mesh_path.with_name(mesh_path.stem + CONFIG_SUFFIX)

    @classmethod
    def load_for_mesh(cls, mesh_filepath: Path | str) -> "TriangulationConfig":
        """Settings stored beside a mesh, or the defaults."""
        return cls.load(cls.path_for_mesh(mesh_filepath))

    def save_for_mesh(self, mesh_filepath: Path | str) -> None:
        self.save(self.path_for_mesh(mesh_filepath))
