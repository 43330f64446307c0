"""Rust FFI bindings generator for the Vulkan API registry (vk.xml).

Pipeline: parse (vk.xml -> Registry) -> link (Registry -> Vulkan) ->
emit (Vulkan -> one Rust file per submodule plus mod.rs).
"""

__version__ = "0.1.0"
