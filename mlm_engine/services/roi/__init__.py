"""Daily ROI."""

from mlm_engine.services.roi.service import RoiRunReport, RoiService

__all__ = ["RoiRunReport", "RoiService"]
