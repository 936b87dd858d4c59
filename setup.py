from setuptools import setup, find_namespace_packages

setup(
    name="nonsense-timer",
    version="1.0.0",
    description="Broadcast elapsed-time server and display clients",
    author="Nonsense Timer Developers",
    packages=find_namespace_packages(include=["nonsense_timer", "nonsense_timer.*"]),
    python_requires=">=3.8",
    install_requires=[
        "rich>=13.5.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nonsense-server=nonsense_timer.timesync.server:main",
            "nonsense-client=nonsense_timer.timesync.client:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
