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
Unit tests for template loading and port-conflict detection.
"""
import os
import pytest
from handel.errors import ParseTemplateError, TemplateDirectoryNotReadable
from handel.MODELS.service_template import PortMapping, ServiceTemplate
from handel.PARSERS.template_parser import TemplateCatalog
from handel.UTILS.reporter import Level, RecordingReporter


class TestTemplateCatalogLoad:
    """Tests for TemplateCatalog.load."""

    def test_load(self, template_dir):
        """Test loading templates named after their files."""
        folder = template_dir({
            'mysql': {'image': 'mysql:5.7', 'restart': 'always', 'ports': ['3306:3306']},
            'kafka': {
                'image': 'wurstmeister/kafka:2.12-2.4.0',
                'depends-on': ['zookeeper'],
                'environment': {'KAFKA_BROKER_ID': 1},
                'deploy': {'mode': 'replicated', 'replicas': 2},
            },
        })
        catalog = TemplateCatalog.load(folder)

        assert len(catalog) == 2
        assert catalog.names() == ['kafka', 'mysql']
        kafka = catalog.get('kafka')
        assert kafka.image == 'wurstmeister/kafka:2.12-2.4.0'
        assert kafka.dependencies == ['zookeeper']
        assert kafka.environment == {'KAFKA_BROKER_ID': '1'}
        assert kafka.deploy.replicas == 2
        assert catalog.get('mysql').ports == [PortMapping(token='3306:3306', source=3306, target=3306)]
        assert catalog.get('redis') is None

    def test_yaml_extension(self, template_dir):
        """Test that .yaml files are loaded too."""
        folder = template_dir({'redis': {'image': 'redis:6'}}, ext=".yaml")
        catalog = TemplateCatalog.load(folder)
        assert 'redis' in catalog

    def test_skips_other_files_and_directories(self, template_dir):
        """Test that non-YAML files and subdirectories are ignored."""
        folder = template_dir({'redis': {'image': 'redis:6'}})
        with open(os.path.join(folder, 'README.md'), 'w') as f:
            f.write("# templates")
        os.mkdir(os.path.join(folder, 'nested.yml'))

        reporter = RecordingReporter()
        catalog = TemplateCatalog.load(folder, reporter=reporter)

        assert catalog.names() == ['redis']
        assert any('README.md' in m for m in reporter.texts(Level.WARN))

    def test_unknown_fields_ignored(self, template_dir):
        """Test that fields handel does not know are ignored."""
        folder = template_dir({'redis': {'image': 'redis:6', 'healthcheck': {'test': ['CMD']}}})
        assert TemplateCatalog.load(folder).get('redis').image == 'redis:6'

    def test_missing_directory(self, tmp_path):
        """Test that an unreadable folder is fatal and names the folder."""
        missing = str(tmp_path / "missing")
        with pytest.raises(TemplateDirectoryNotReadable) as excinfo:
            TemplateCatalog.load(missing)
        assert excinfo.value.directory == missing

    def test_missing_image_is_parse_error(self, template_dir):
        """Test that a template without an image cannot be parsed."""
        folder = template_dir({'broken': {'restart': 'always'}})
        with pytest.raises(ParseTemplateError) as excinfo:
            TemplateCatalog.load(folder)
        assert excinfo.value.path.endswith('broken.yml')

    def test_invalid_yaml_is_parse_error(self, template_dir):
        """Test that invalid YAML is reported with its path."""
        folder = template_dir({})
        with open(os.path.join(folder, 'bad.yml'), 'w') as f:
            f.write("image: [unterminated\n")
        with pytest.raises(ParseTemplateError) as excinfo:
            TemplateCatalog.load(folder)
        assert 'bad.yml' in str(excinfo.value)

    def test_compose_port_forms_load(self, template_dir):
        """Test that bound addresses and protocols do not stop a template loading."""
        folder = template_dir({'web': {'image': 'nginx', 'ports': ['127.0.0.1:8080:80', '53:53/udp']}})
        ports = TemplateCatalog.load(folder).get('web').ports
        assert [(p.source, p.target) for p in ports] == [(8080, 80), (53, 53)]
        assert [p.render() for p in ports] == ['127.0.0.1:8080:80', '53:53/udp']

    def test_long_depends_on_kept(self, template_dir):
        """Test that the mapping form of depends-on keeps its conditions."""
        folder = template_dir({'api': {
            'image': 'api:1',
            'depends-on': {'db': {'condition': 'service_healthy'}, 'cache': None},
        }})
        api = TemplateCatalog.load(folder).get('api')
        assert sorted(api.dependencies) == ['cache', 'db']
        assert api.fragment()['depends_on'] == {'db': {'condition': 'service_healthy'}, 'cache': {}}


class TestPortMapping:
    """Tests for PortMapping tokens."""

    def test_target_only(self):
        port = PortMapping.parse("8080")
        assert (port.source, port.target) == (None, 8080)

    def test_source_and_target(self):
        port = PortMapping.parse("8081:80")
        assert (port.source, port.target) == (8081, 80)

    def test_integer_token(self):
        assert PortMapping.parse(9000) == PortMapping(token="9000", target=9000)

    def test_host_address(self):
        port = PortMapping.parse("127.0.0.1:8080:80")
        assert (port.source, port.target) == (8080, 80)

    def test_protocol_suffix(self):
        port = PortMapping.parse("53:53/udp")
        assert (port.source, port.target) == (53, 53)

    def test_long_form(self):
        port = PortMapping.parse({'target': 80, 'published': 8080, 'protocol': 'tcp'})
        assert (port.source, port.target) == (8080, 80)
        assert port.render() == {'target': 80, 'published': 8080, 'protocol': 'tcp'}

    @pytest.mark.parametrize("token", ["8000-8010:80", "70000:80", "http", ""])
    def test_unreadable_host_port(self, token):
        assert PortMapping.parse(token).source is None

    def test_render_is_verbatim(self):
        assert PortMapping.parse("8081:80").render() == "8081:80"
        assert PortMapping.parse("127.0.0.1::80/tcp").render() == "127.0.0.1::80/tcp"


def _catalog(port_range=None, **ports):
    templates = {
        name: ServiceTemplate(name=name, image=f"{name}:1", ports=tokens)
        for name, tokens in ports.items()
    }
    return TemplateCatalog(templates, port_range=port_range)


class TestPortConflicts:
    """Tests for port-conflict detection."""

    def test_shared_source_port_conflicts(self):
        """Test that two services binding 8080 conflict."""
        catalog = _catalog(api=["8080:80"], web=["8080:8000"], db=["3306:3306"])
        conflicts = catalog.find_port_conflicts()
        assert len(conflicts) == 1
        assert conflicts[0].port == 8080
        assert conflicts[0].services == ('api', 'web')

    def test_target_only_never_conflicts(self):
        """Test that container-only ports take no part in detection."""
        catalog = _catalog(api=["8080"], web=["8080"])
        assert catalog.find_port_conflicts() == []

    def test_target_only_against_source(self):
        """Test that a target port does not clash with another service's source port."""
        catalog = _catalog(api=["8080"], web=["8080:80"])
        assert catalog.find_port_conflicts() == []

    def test_repeated_port_in_one_template(self):
        """Test that one service binding a port twice is not a conflict."""
        catalog = _catalog(api=["8080:80", "8080:81"])
        assert catalog.find_port_conflicts() == []

    def test_check_ports_warns_and_suggests(self):
        """Test that conflicts are reported with free ports from the range."""
        catalog = _catalog(port_range=(8080, 8090),
                           api=["8080:80", "8081:81"], web=["8080:80", "8081:81"], db=["8082:1"])
        reporter = RecordingReporter()
        report = catalog.check_ports(reporter)

        assert not report.ok
        assert [c.port for c in report.conflicts] == [8080, 8081]
        assert report.suggestions == (8083, 8084)
        warnings = reporter.texts(Level.WARN)
        assert any('8080: api, web' in w for w in warnings)

    def test_check_ports_without_range(self):
        """Test that no ports are suggested without a configured range."""
        catalog = _catalog(api=["8080:80"], web=["8080:80"])
        report = catalog.check_ports()
        assert report.suggestions == ()
        assert len(report.conflicts) == 1

    def test_no_conflicts(self):
        """Test a clean template set."""
        report = _catalog(api=["8080:80"], web=["8081:80"]).check_ports()
        assert report.ok

    def test_load_reports_conflicts(self, template_dir):
        """Test that loading runs detection without failing."""
        folder = template_dir({
            'api': {'image': 'api:1', 'ports': ['8080:80']},
            'web': {'image': 'web:1', 'ports': ['8080:80']},
        })
        reporter = RecordingReporter()
        catalog = TemplateCatalog.load(folder, port_range=(9000, 9001), reporter=reporter)
        assert len(catalog) == 2
        assert any('9000' in w for w in reporter.texts(Level.WARN))
