[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rsplpa"
version = "0.1.0"
description = "eUICC remote SIM provisioning helpers: ES10b/ES10c card commands, TLV encoding and ES9+/ES11 server exchanges"
requires-python = ">=3.10"
dependencies = []
keywords = ["euicc", "esim", "rsp", "lpa", "sgp22", "apdu", "smdp", "tlv"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rsplpa"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
