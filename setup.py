import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

requirements = []
with open('requirements.txt', 'r') as fh:
    for line in fh:
        if line.strip():
            requirements.append(line.strip())

setuptools.setup(
    name="mpmtools",
    version="0.1",
    description="UNICORT B1+ correction and tissue weighted smoothing of multi-parametric MRI maps",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "./"},
    packages=setuptools.find_packages(where="./"),
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'mpmtools=mpmtools.main_mpmtools:main',
        ]
    }
)
