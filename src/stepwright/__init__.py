"""stepwright - A sequential step runner with reverse cleanup for building Oracle Classic images."""

from .artifact import Artifact as Artifact
from .artifact import assemble as assemble
from .builder import Builder as Builder
from .cancel import CancelToken as CancelToken
from .config import BuilderConfig as BuilderConfig
from .config import BuildVariant as BuildVariant
from .runner import Runner as Runner
from .state import StateBag as StateBag
from .state import StateKey as StateKey
from .step import Step as Step
from .step import StepAction as StepAction
from .workflow import Workflow as Workflow
from .workflow import build_workflow as build_workflow
