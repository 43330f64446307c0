"""Vulkan FFI bindings generator for Rust.

Generates Rust bindings from the Khronos vk.xml registry, fetching the
registry into --path first when no local copy exists.

Usage:
    python gen.py --out bindings/src/vk
"""

from vkgen.cli import main

if __name__ == "__main__":
    main()
