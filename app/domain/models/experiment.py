from pydantic import BaseModel
from typing import Dict, Any

class ExperimentConfig(BaseModel):
    """
    Traffic allocation for one named experiment, as stored in `experiments`:
      { "name": "reco_strategy", "is_active": true,
        "traffic_allocation": {"personalized": 50, "trending": 30} }
    Values are kept raw here; the allocator validates them and falls back to control.
    """
    name: str
    is_active: bool = True
    traffic_allocation: Dict[str, Any] = {}
    model_config = {"frozen": True}
