from .batch import Batch  # noqa: F401
from .batch_material import BatchMaterial  # noqa: F401
from .material import Material  # noqa: F401
from .material_log import MaterialLog  # noqa: F401
from .setting import Setting  # noqa: F401
from .usage_log import UsageLog  # noqa: F401
