"""Native symbol discovery and shared object installation."""

from crashmap.ndk.jni_libs import JniLibsInstaller, jni_libs_destination
from crashmap.ndk.symbols import KNOWN_ABIS, SharedObject, find_shared_objects


__all__ = [
    "KNOWN_ABIS",
    "JniLibsInstaller",
    "SharedObject",
    "find_shared_objects",
    "jni_libs_destination",
]
