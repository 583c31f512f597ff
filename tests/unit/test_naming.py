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
Unit tests for name normalization and image references.
"""
import pytest
from m2c.UTILS.naming import normalize_project_name, network_name
from m2c.UTILS.image_reference import ImageReference


class TestNormalizeProjectName:
    """Tests for normalize_project_name."""

    def test_strips_and_lowercases(self):
        """Test that non alphanumeric characters are removed."""
        assert normalize_project_name("My-App_2") == "myapp2"

    def test_already_normalized(self):
        """Test that a normalized name is unchanged."""
        assert normalize_project_name("shop") == "shop"

    def test_dots_and_spaces(self):
        """Test removal of dots and spaces."""
        assert normalize_project_name("Order Service.v1") == "orderservicev1"

    def test_network_name(self):
        """Test network name derivation."""
        assert network_name("My-App_2", "m2c") == "myapp2_m2c"


class TestImageReference:
    """Tests for ImageReference parsing."""

    def test_parse_simple_name(self):
        """Test parsing a simple image name."""
        ref = ImageReference.parse("nginx")
        assert ref.registry == "docker.io"
        assert ref.repository == "library/nginx"
        assert ref.tag == "latest"
        assert ref.short_name == "nginx"

    def test_parse_registry_with_port(self):
        """Test parsing a registry with port and a nested repository."""
        ref = ImageReference.parse("registry.io:5000/team/api:2.1")
        assert ref.registry == "registry.io:5000"
        assert ref.repository == "team/api"
        assert ref.tag == "2.1"
        assert ref.short_name == "api"

    def test_parse_with_digest(self):
        """Test parsing image with digest."""
        ref = ImageReference.parse("nginx@sha256:abc123")
        assert ref.digest == "sha256:abc123"
        assert ref.tag is None
        assert ref.short_name == "nginx"

    def test_parse_user_image(self):
        """Test parsing user/image format."""
        ref = ImageReference.parse("myuser/myimage:v1")
        assert ref.registry == "docker.io"
        assert ref.short_name == "myimage"

    def test_empty_reference(self):
        """Test that an empty reference is rejected."""
        with pytest.raises(ValueError):
            ImageReference.parse("")

    def test_parsed_fields_compare_as_value(self):
        """Test that parsed references compare by their fields."""
        assert ImageReference.parse("postgres:13") == ImageReference("docker.io", "library/postgres", "13")
        assert "library/postgres" in repr(ImageReference.parse("postgres:13"))
