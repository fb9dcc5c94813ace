from typing import Dict, List, Literal, Optional

from pydantic import BaseModel


class GraphNodeDTO(BaseModel):
    id: str
    markers: List[str] = []
    kind: str = "value"
    call_site: Optional[str] = None


class GraphEdgeDTO(BaseModel):
    source: str
    target: str
    kind: Literal["data", "control"] = "data"


class ControllerDTO(BaseModel):
    name: str
    nodes: List[GraphNodeDTO]
    edges: List[GraphEdgeDTO] = []


class GraphDTO(BaseModel):
    controllers: List[ControllerDTO]


class WitnessDTO(BaseModel):
    kind: str
    variable: Optional[str] = None
    quantifier: Optional[str] = None
    marker: Optional[str] = None
    node: Optional[str] = None
    tried: List[str] = []
    check: Optional[str] = None
    bound: Dict[str, str] = {}
    cause: Optional["WitnessDTO"] = None


WitnessDTO.model_rebuild()


class UnitVerdictDTO(BaseModel):
    unit: str
    satisfied: bool
    witness: Optional[WitnessDTO] = None


class PolicyReportDTO(BaseModel):
    satisfied: bool
    units: List[UnitVerdictDTO] = []
    warnings: List[str] = []
    errors: List[str] = []


class CheckPolicyRequest(BaseModel):
    policy_path: str
    graph_path: str
    units: List[str] = []
    config: Optional[str] = None
