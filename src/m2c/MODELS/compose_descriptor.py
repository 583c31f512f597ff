# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Models for the generated docker-compose descriptor.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel


class ServiceNetwork(BaseModel):
    """
    Membership of a service in a network.
    """
    aliases: List[str] = []


class ComposeService(BaseModel):
    """
    A single service entry of the descriptor.
    """
    image: str
    volumes: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    env_file: Optional[List[str]] = None
    networks: Dict[str, ServiceNetwork] = {}


class ComposeNetwork(BaseModel):
    """
    A top-level network declaration.
    """
    driver: str = "bridge"


class ComposeDescriptor(BaseModel):
    """
    Complete descriptor for a multi-service environment.
    Equivalent to a docker-compose.yml file.
    """
    version: str = "2"
    services: Dict[str, ComposeService] = {}
    networks: Dict[str, ComposeNetwork] = {}
