from .deployer import LocalDeployer as LocalDeployer
from .lifecycle import LocalProcessLifecycle as LocalProcessLifecycle
