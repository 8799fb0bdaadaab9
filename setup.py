from setuptools import setup, find_packages

setup(
    name='chemio_utils',
    version='0.1',
    license='GPL v2',
    description='Readers for MOPAC 7 output and Z-matrix files',
    packages=find_packages(exclude=['tests']),
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
)
