from setuptools import find_packages, setup

setup(
    name="ascii_video_codec",
    version="0.0.1",
    packages=find_packages(include=["asciicodec", "asciicodec.*"]),
    description="Huffman + delta frame codec for colored ascii videos",
    license="MIT",
    install_requires=[
        "pytest",
        "numpy",
        "bitarray",
    ],
)
