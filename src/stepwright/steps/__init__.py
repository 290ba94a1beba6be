"""Concrete build steps."""

from .common import StepCleanupTempKeys as StepCleanupTempKeys
from .common import StepConnect as StepConnect
from .common import StepKeyPair as StepKeyPair
from .common import StepProvision as StepProvision
from .oracle import StepAddKeysToAPI as StepAddKeysToAPI
from .oracle import StepAttachVolume as StepAttachVolume
from .oracle import StepCreateImage as StepCreateImage
from .oracle import StepCreateInstance as StepCreateInstance
from .oracle import StepCreateIPReservation as StepCreateIPReservation
from .oracle import StepCreatePersistentVolume as StepCreatePersistentVolume
from .oracle import StepCreatePVBuilder as StepCreatePVBuilder
from .oracle import StepCreatePVMaster as StepCreatePVMaster
from .oracle import StepListImages as StepListImages
from .oracle import StepSecurity as StepSecurity
from .oracle import StepSnapshot as StepSnapshot
from .oracle import StepTerminatePVMaster as StepTerminatePVMaster
from .oracle import StepUploadImage as StepUploadImage
