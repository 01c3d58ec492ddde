"""CMake code generated by the bridge.

- the provider script, included through ``CMAKE_PROJECT_TOP_LEVEL_INCLUDES``
- ``paths.cmake``, which makes the Conan generators folders visible before the
  first find_package() of the project runs
- one fragment per find_package() request
"""

import os

from .config import CONFIG_FILE
from .resolver import LookupMode, Source
from .staleness import SPEC_FILES

PATHS_FILE = "paths.cmake"
SETTINGS_FILE = "settings.txt"
HEADER = "# Generated by conanbridge, do not edit"

# Variables the provider script dumps into the settings file
SETTINGS_VARIABLES = (
    "CMAKE_SYSTEM_NAME",
    "CMAKE_HOST_SYSTEM_NAME",
    "CMAKE_SYSTEM_PROCESSOR",
    "CMAKE_SYSTEM_VERSION",
    "CMAKE_OSX_ARCHITECTURES",
    "CMAKE_OSX_SYSROOT",
    "CMAKE_OSX_DEPLOYMENT_TARGET",
    "CMAKE_CXX_COMPILER_ID",
    "CMAKE_CXX_COMPILER_VERSION",
    "CMAKE_CXX_COMPILER_ARCHITECTURE_ID",
    "CMAKE_C_COMPILER",
    "CMAKE_CXX_COMPILER",
    "CMAKE_CXX_STANDARD",
    "CMAKE_CXX_EXTENSIONS",
    "CMAKE_MSVC_RUNTIME_LIBRARY",
    "CMAKE_GENERATOR",
    "CMAKE_BUILD_TYPE",
    "CMAKE_CONFIGURATION_TYPES",
    "CMAKE_ROOT",
    "CMAKE_PREFIX_PATH",
    "CMAKE_MODULE_PATH",
    "ANDROID_ABI",
    "ANDROID_PLATFORM",
    "ANDROID_STL",
    "ANDROID_NDK",
    "CMAKE_ANDROID_NDK",
)

PROVIDER_TEMPLATE = """\
{header}
# Use with -DCMAKE_PROJECT_TOP_LEVEL_INCLUDES=<path to this file>
cmake_minimum_required(VERSION 3.24)

set(CONANBRIDGE_COMMAND "{command}" CACHE STRING "conanbridge executable")
separate_arguments(_conanbridge_command NATIVE_COMMAND "${{CONANBRIDGE_COMMAND}}")
set(_conanbridge_state_dir "${{CMAKE_BINARY_DIR}}/conanbridge")

function(conanbridge_write_settings settings_file)
    get_property(_multi_config GLOBAL PROPERTY GENERATOR_IS_MULTI_CONFIG)
    set(_content "GENERATOR_IS_MULTI_CONFIG=${{_multi_config}}\\n")
    foreach(_var {variables})
        if(DEFINED ${{_var}})
            string(APPEND _content "${{_var}}=${{${{_var}}}}\\n")
        endif()
    endforeach()
    file(WRITE "${{settings_file}}" "${{_content}}")
endfunction()

# Install once, before any subdirectory can call find_package()
conanbridge_write_settings("${{_conanbridge_state_dir}}/{settings_file}")
execute_process(
    COMMAND ${{_conanbridge_command}} --path "${{CMAKE_SOURCE_DIR}}"
            install --build-dir "${{CMAKE_BINARY_DIR}}"
            --settings-file "${{_conanbridge_state_dir}}/{settings_file}"
    RESULT_VARIABLE _conanbridge_result)
if(NOT _conanbridge_result EQUAL 0)
    message(FATAL_ERROR "conanbridge install failed")
endif()
include("${{_conanbridge_state_dir}}/{paths_file}")

# Editing the dependency file or the bridge configuration re-runs the configuration
foreach(_conanbridge_input {configure_inputs})
    if(EXISTS "${{CMAKE_SOURCE_DIR}}/${{_conanbridge_input}}")
        set_property(DIRECTORY "${{CMAKE_SOURCE_DIR}}" APPEND PROPERTY
                     CMAKE_CONFIGURE_DEPENDS "${{CMAKE_SOURCE_DIR}}/${{_conanbridge_input}}")
    endif()
endforeach()

macro(conanbridge_provide_dependency method package_name)
    cmake_parse_arguments(_cb "REQUIRED;MODULE;QUIET" "" "COMPONENTS" ${{ARGN}})
    set(_cb_fragment "${{_conanbridge_state_dir}}/find-${{package_name}}.cmake")
    set(_cb_args find "${{package_name}}" --build-dir "${{CMAKE_BINARY_DIR}}" --output "${{_cb_fragment}}")
    if(_cb_MODULE)
        list(APPEND _cb_args --module)
    endif()
    if(_cb_REQUIRED)
        list(APPEND _cb_args --required)
    endif()
    if(_cb_COMPONENTS)
        string(REPLACE ";" "," _cb_components "${{_cb_COMPONENTS}}")
        list(APPEND _cb_args --components "${{_cb_components}}")
    endif()
    execute_process(COMMAND ${{_conanbridge_command}} --path "${{CMAKE_SOURCE_DIR}}" ${{_cb_args}}
                    RESULT_VARIABLE _cb_result)
    if(NOT _cb_result EQUAL 0)
        message(FATAL_ERROR "conanbridge could not resolve ${{package_name}}")
    endif()
    include("${{_cb_fragment}}")
    if(NOT CONANBRIDGE_HANDLED)
        find_package(${{package_name}} ${{ARGN}} ${{CONANBRIDGE_FIND_MODE}} BYPASS_PROVIDER)
    endif()
endmacro()

cmake_language(SET_DEPENDENCY_PROVIDER conanbridge_provide_dependency SUPPORTED_METHODS FIND_PACKAGE)
"""


def _quote(value):
    return '"' + str(value).replace("\\", "/").replace('"', '\\"') + '"'


def render_provider_script(command="conanbridge", spec_files=SPEC_FILES):
    return PROVIDER_TEMPLATE.format(
        header=HEADER,
        command=command,
        variables=" ".join(SETTINGS_VARIABLES),
        settings_file=SETTINGS_FILE,
        paths_file=PATHS_FILE,
        configure_inputs=" ".join(tuple(spec_files) + (CONFIG_FILE,)),
    )


def _unique(items):
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def render_discovery_file(results):
    """Rank the Conan generators folders of every build type ahead of all other search locations."""
    paths = _unique(path for result in results.values() for path in result.discovery_paths)
    lines = [HEADER]
    if paths:
        joined = " ".join(_quote(path) for path in paths)
        lines.append(f"list(PREPEND CMAKE_PREFIX_PATH {joined})")
        lines.append(f"list(PREPEND CMAKE_MODULE_PATH {joined})")
    return "\n".join(lines) + "\n"


def _not_found(request, response):
    """Report a package Conan resolved as unusable the way find_package() reports a miss."""
    reason = response.reason or "not provided by the Conan install"
    message = f"{request.name} was not found: {reason}"
    lines = [f"set({request.name}_FOUND FALSE)"]
    for component in response.missing_components:
        lines.append(f"set({request.name}_{component}_FOUND FALSE)")
    lines.append(f"set({request.name}_NOT_FOUND_MESSAGE {_quote(message)})")
    if request.required:
        lines.append(f"message(FATAL_ERROR {_quote(message)})")
    return lines


def render_fragment(request, response):
    """CMake code the provider macro includes for one request.

    ``CONANBRIDGE_HANDLED`` tells the macro whether the fragment already answered
    the request; otherwise the macro runs find_package() itself, with
    ``CONANBRIDGE_FIND_MODE`` appended to the original arguments.
    """
    lines = [HEADER]
    from_conan = response.source is Source.PACKAGE_MANAGER
    handled = from_conan and (response.synthesized or not response.found)
    lines.append(f"set(CONANBRIDGE_HANDLED {'TRUE' if handled else 'FALSE'})")
    # only Conan config packages are forced into config mode
    config_mode = from_conan and response.found and request.mode is LookupMode.CONFIG
    lines.append("set(CONANBRIDGE_FIND_MODE CONFIG)" if config_mode else "unset(CONANBRIDGE_FIND_MODE)")

    if from_conan and not response.found:
        lines.extend(_not_found(request, response))
    elif from_conan:
        if response.synthesized:
            config_dir = os.path.dirname(response.descriptor)
            call = [
                f"find_package({request.name} CONFIG BYPASS_PROVIDER",
                f"PATHS {_quote(config_dir)} NO_DEFAULT_PATH",
            ]
            if request.components:
                call.append("COMPONENTS " + " ".join(request.components))
            if request.required:
                call.append("REQUIRED")
            lines.append(" ".join(call) + ")")
        elif request.mode is LookupMode.MODULE:
            lines.append(f"list(PREPEND CMAKE_MODULE_PATH {_quote(os.path.dirname(response.descriptor))})")
        for name, value in response.variables.items():
            lines.append(f"set({name} {_quote(value)})")
    return "\n".join(lines) + "\n"


def write_file(path, content):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)
    return path


def write_discovery_file(state_dir, results):
    return write_file(os.path.join(state_dir, PATHS_FILE), render_discovery_file(results))
