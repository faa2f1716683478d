"""
模板空间映射模块

将受试者的脊髓 / 病灶 mask 通过形变场映射到模板空间
"""

from .warp_backends import (
    WarpBackend,
    AntsWarpBackend,
    SitkWarpBackend,
    get_warp_backend,
    NEAREST,
    LINEAR,
)
from .subject_resampler import (
    TemplateSpaceMasks,
    template_output_paths,
    merge_to_template,
    resample_subject,
    load_cached,
)

__all__ = [
    'WarpBackend',
    'AntsWarpBackend',
    'SitkWarpBackend',
    'get_warp_backend',
    'NEAREST',
    'LINEAR',
    'TemplateSpaceMasks',
    'template_output_paths',
    'merge_to_template',
    'resample_subject',
    'load_cached',
]
