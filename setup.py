import os
from setuptools import setup, find_packages

setup(
    name="onnxfuzz",
    version="0.3.0",
    description="onnxfuzz — load an ONNX model, feed it seeded random inputs, run it once",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.0.0",
        "numpy>=1.24.0",
        "onnx>=1.14.0",
        "protobuf>=3.20.0",
    ],
    extras_require={
        "onnx": [
            "onnxruntime>=1.16.0",
        ],
        "fuzz": [
            "atheris>=2.3.0",
            "onnxruntime>=1.16.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "onnxruntime>=1.16.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "onnxruntime>=1.16.0",
            "ruff>=0.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "onnxfuzz=onnxfuzz.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Testing",
    ],
)
