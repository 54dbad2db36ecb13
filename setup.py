from setuptools import setup

setup(
    name="spectrum-monitor",
    version="0.1.0",
    description="Live autospectra monitor for LWA correlator and data recorder spectra",
    py_modules=[
        "acquire",
        "correlator",
        "data_models",
        "drspec",
        "errors",
        "etcd_protocol",
        "frame_schema",
        "global_params",
        "loaders",
        "main",
        "remote_poller",
        "topology",
    ],
    install_requires=[
        "numpy",
        "paramiko",
        "etcd3",
        # etcd3's generated stubs predate protobuf 4.
        "grpcio",
        "protobuf<4",
    ],
    extras_require={
        # Dev dependencies: run tests with pip install -e ".[dev]" then pytest tests
        "dev": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "spectrum-monitor=main:main",
        ],
    },
    python_requires=">=3.9",
)
