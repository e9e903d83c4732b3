import tempfile
from pathlib import Path

import pytest
from jinja2.exceptions import TemplateNotFound

from rosapilot.core.template_loader import TemplateLoader


@pytest.fixture
def temp_templates_dir_root():
    """
    Creates a temporary directory that will serve as the 'templates' root for tests.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        templates_root = Path(tmpdir)

        (templates_root / 'terraform').mkdir()

        (templates_root / 'terraform' / 'vpc.tf').write_text(
            'locals {\n  vpc_cidr = "{{ vpc_cidr }}"\n}\n\nresource "aws_vpc" "vpc" {\n'
            '  tags = { Name = "${var.cluster_name}-vpc" }\n}\n'
        )
        (templates_root / 'simple.txt').write_text('Hello, {{ name }}!')
        (templates_root / 'no_vars.txt').write_text('This is a test.')

        yield templates_root


@pytest.fixture
def template_loader(temp_templates_dir_root):
    return TemplateLoader(templates_dir=temp_templates_dir_root)


class TestTemplateLoader:
    def test_init_templates_dir_not_found(self):
        non_existent_path = Path("/path/to/nonexistent/templates_xyz")

        with pytest.raises(FileNotFoundError, match=f"Templates directory not found at: {non_existent_path}."):
            TemplateLoader(templates_dir=non_existent_path)

    def test_validate_template_module(self, template_loader):
        assert template_loader._validate_template_module("terraform") == "terraform"
        assert template_loader._validate_template_module(None) == "."

    def test_validate_template_module_invalid(self, template_loader):
        with pytest.raises(
            ValueError,
            match=r"Invalid template module: 'kubernetes'. Must be one of \('terraform',\) or None.",
        ):
            template_loader._validate_template_module("kubernetes")

    def test_render_template_not_found(self, template_loader):
        with pytest.raises(TemplateNotFound, match="Template 'terraform/non_existent.tf' not found."):
            template_loader.render_template("non_existent.tf", "terraform")

    def test_render_template_no_variables(self, template_loader):
        assert template_loader.render_template("no_vars.txt") == "This is a test."

    def test_render_template_with_variables(self, template_loader):
        assert template_loader.render_template("simple.txt", values={"name": "World"}) == "Hello, World!"

    def test_render_keeps_terraform_interpolation(self, template_loader):
        rendered = template_loader.render_template("vpc.tf", "terraform", values={"vpc_cidr": "10.0.0.0/16"})

        assert 'vpc_cidr = "10.0.0.0/16"' in rendered
        assert '"${var.cluster_name}-vpc"' in rendered
        assert rendered.endswith("}\n")

    def test_render_template_missing_variables(self, template_loader):
        with pytest.raises(
            ValueError,
            match="There are variables in the template './simple.txt' that are not provided in the 'values' "
                  "dictionary: {'name'}",
        ):
            template_loader.render_template("simple.txt", values={"another_var": "something"})

    def test_render_template_values_not_dict(self, template_loader):
        with pytest.raises(TypeError, match="Template values must be a dictionary"):
            template_loader.render_template("simple.txt", values="not_a_dict")

    def test_render_to_file(self, template_loader, tmp_path: Path):
        destination = tmp_path / "cluster" / "setup-vpc.tf"

        written = template_loader.render_to_file(
            "vpc.tf", destination, values={"vpc_cidr": "10.2.0.0/16"}, template_module="terraform"
        )

        assert written == destination
        assert '"10.2.0.0/16"' in destination.read_text()

    def test_packaged_templates_render(self):
        loader = TemplateLoader()

        for name in ("setup-hcp-vpc.tf", "setup-private-link-vpc.tf"):
            rendered = loader.render_template(name, "terraform", values={"vpc_cidr": "10.0.0.0/16"})
            assert 'output "cluster-private-subnet"' in rendered
