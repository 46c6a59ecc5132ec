"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


CASCADE_MODES = ("instant", "confirm", "geometric", "template")


@dataclass
class CameraConfig:
    """Camera configuration."""
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [640, 480])
    fps: int = 30
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [640, 480]),
            fps=d.get("fps", 30),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class ProcessingConfig:
    """
    Fixed processing resolution and compute cadence.

    Display resolution is independent; frames are downscaled to
    (width, height) before any matching.
    """
    width: int = 320
    height: int = 240
    target_fps: float = 30.0

    @property
    def size(self) -> tuple:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two executed detection cycles."""
        return 1.0 / self.target_fps

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProcessingConfig":
        return cls(
            width=d.get("width", 320),
            height=d.get("height", 240),
            target_fps=d.get("target_fps", 30.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "target_fps": self.target_fps,
        }


@dataclass
class TemplateConfig:
    """Instant template gate configuration."""
    size: int = 96
    threshold: float = 0.55
    edge_mode: bool = False
    canny_low: int = 50
    canny_high: int = 150

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TemplateConfig":
        return cls(
            size=d.get("size", 96),
            threshold=d.get("threshold", 0.55),
            edge_mode=d.get("edge_mode", False),
            canny_low=d.get("canny_low", 50),
            canny_high=d.get("canny_high", 150),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "threshold": self.threshold,
            "edge_mode": self.edge_mode,
            "canny_low": self.canny_low,
            "canny_high": self.canny_high,
        }


@dataclass
class FeatureConfig:
    """
    ORB extraction and geometric verification parameters.

    The extraction parameters bound worst-case latency of the fallback:
    n_features caps the number of keypoints per image, n_levels fixes the
    pyramid depth.
    """
    n_features: int = 1000
    scale_factor: float = 1.2
    n_levels: int = 6
    edge_threshold: int = 16
    patch_size: int = 16
    fast_threshold: int = 12
    ratio: float = 0.90
    min_good_matches: int = 3
    min_inliers: int = 6
    ransac_reproj_threshold: float = 5.0
    min_descriptors: int = 8

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeatureConfig":
        return cls(
            n_features=d.get("n_features", 1000),
            scale_factor=d.get("scale_factor", 1.2),
            n_levels=d.get("n_levels", 6),
            edge_threshold=d.get("edge_threshold", 16),
            patch_size=d.get("patch_size", 16),
            fast_threshold=d.get("fast_threshold", 12),
            ratio=d.get("ratio", 0.90),
            min_good_matches=d.get("min_good_matches", 3),
            min_inliers=d.get("min_inliers", 6),
            ransac_reproj_threshold=d.get("ransac_reproj_threshold", 5.0),
            min_descriptors=d.get("min_descriptors", 8),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_features": self.n_features,
            "scale_factor": self.scale_factor,
            "n_levels": self.n_levels,
            "edge_threshold": self.edge_threshold,
            "patch_size": self.patch_size,
            "fast_threshold": self.fast_threshold,
            "ratio": self.ratio,
            "min_good_matches": self.min_good_matches,
            "min_inliers": self.min_inliers,
            "ransac_reproj_threshold": self.ransac_reproj_threshold,
            "min_descriptors": self.min_descriptors,
        }


@dataclass
class CascadeConfig:
    """
    How the two stages combine into a per-frame hit.

    Attributes:
        mode: "instant" (gate hit passes, otherwise fallback decides alone),
            "confirm" (gate hit AND enough inliers), "geometric" (fallback
            only), "template" (gate only).
        smooth_window: Number of recent frames OR'ed into the debounced signal.
        show_overlay: Compute the projected quad for the external renderer.
    """
    mode: str = "instant"
    smooth_window: int = 5
    show_overlay: bool = True

    @property
    def runs_gate(self) -> bool:
        return self.mode != "geometric"

    @property
    def runs_fallback(self) -> bool:
        return self.mode != "template"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CascadeConfig":
        return cls(
            mode=d.get("mode", "instant"),
            smooth_window=d.get("smooth_window", 5),
            show_overlay=d.get("show_overlay", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "smooth_window": self.smooth_window,
            "show_overlay": self.show_overlay,
        }


@dataclass
class PassLatchConfig:
    """Pass latch behaviour once the wafer has been confirmed."""
    exit_on_pass: bool = False
    hold_seconds: float = 1.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PassLatchConfig":
        return cls(
            exit_on_pass=d.get("exit_on_pass", False),
            hold_seconds=d.get("hold_seconds", 1.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exit_on_pass": self.exit_on_pass,
            "hold_seconds": self.hold_seconds,
        }


@dataclass
class ReferencesConfig:
    """Reference image files loaded at session start."""
    paths: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReferencesConfig":
        return cls(paths=list(d.get("paths", []) or []))

    def to_dict(self) -> Dict[str, Any]:
        return {"paths": list(self.paths)}


@dataclass
class WebConfig:
    """Status API server."""
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", False),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    template: TemplateConfig = field(default_factory=TemplateConfig)
    features: FeatureConfig = field(default_factory=FeatureConfig)
    cascade: CascadeConfig = field(default_factory=CascadeConfig)
    pass_latch: PassLatchConfig = field(default_factory=PassLatchConfig)
    references: ReferencesConfig = field(default_factory=ReferencesConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/wafer_detector.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            processing=ProcessingConfig.from_dict(d.get("processing", {}) or {}),
            template=TemplateConfig.from_dict(d.get("template", {}) or {}),
            features=FeatureConfig.from_dict(d.get("features", {}) or {}),
            cascade=CascadeConfig.from_dict(d.get("cascade", {}) or {}),
            pass_latch=PassLatchConfig.from_dict(d.get("pass_latch", {}) or {}),
            references=ReferencesConfig.from_dict(d.get("references", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/wafer_detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "camera": self.camera.to_dict(),
            "processing": self.processing.to_dict(),
            "template": self.template.to_dict(),
            "features": self.features.to_dict(),
            "cascade": self.cascade.to_dict(),
            "pass_latch": self.pass_latch.to_dict(),
            "references": self.references.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
