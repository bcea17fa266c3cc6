import pytest
from qaplan.adf import ContainerNode, TextLeaf, extract_text, flatten, parse_node
from qaplan.ticket_normalizer import (
    MalformedTicket, extract_acceptance_criteria, flatten_description, normalize
)


def adf_paragraph(*texts):
    return {
        'type': 'paragraph',
        'content': [{'type': 'text', 'text': text} for text in texts]
    }


class TestRichTextFlattening:

    def test_extract_text_from_adf(self):
        """Test that leaf text is concatenated in document order without separators"""
        adf_content = {
            'type': 'doc',
            'version': 1,
            'content': [
                adf_paragraph('Hello', ' world'),
                adf_paragraph('Second paragraph')
            ]
        }

        assert extract_text(adf_content) == 'Hello worldSecond paragraph'

    def test_flatten_is_concatenative(self):
        """Test flatten({content: [A, B]}) == flatten(A) + flatten(B)"""
        a = {'type': 'paragraph', 'content': [adf_paragraph('x', 'y'), {'type': 'text', 'text': 'z'}]}
        b = adf_paragraph('1', '2')

        assert extract_text({'content': [a, b]}) == extract_text(a) + extract_text(b)

    def test_parse_node_builds_tagged_variant(self):
        node = parse_node({'content': [{'type': 'text', 'text': 'a'}, {'content': [{'text': 'b'}]}]})

        assert node == ContainerNode((TextLeaf('a'), ContainerNode((TextLeaf('b'),))))
        assert flatten(node) == 'ab'

    def test_nested_containers_keep_sibling_order(self):
        raw = {'content': [
            {'content': [{'text': '1'}, {'content': [{'text': '2'}]}]},
            {'text': '3'},
            {'content': [{'text': '4'}]}
        ]}

        assert extract_text(raw) == '1234'

    def test_deeply_nested_document_does_not_recurse(self):
        """Test that adversarially deep input is flattened without hitting the recursion limit"""
        node = {'type': 'text', 'text': 'deep'}
        for _ in range(5000):
            node = {'type': 'paragraph', 'content': [node]}

        assert extract_text({'type': 'doc', 'content': [node]}) == 'deep'

    def test_container_without_children_contributes_nothing(self):
        assert extract_text({'content': [{'type': 'hardBreak'}, {'text': 'x'}]}) == 'x'


class TestFlattenDescription:

    def test_plain_text_is_unchanged(self):
        assert flatten_description('Already plain\n\ntext') == 'Already plain\n\ntext'

    def test_empty_description(self):
        assert flatten_description(None) == ''
        assert flatten_description('') == ''

    def test_unknown_structure_falls_back_to_json(self):
        assert flatten_description({'foo': 'bar'}) == '{"foo": "bar"}'


class TestAcceptanceCriteriaExtraction:

    def test_acceptance_criteria_label_until_blank_line(self):
        text = (
            "Intro text\n\n"
            "Acceptance Criteria:\n- user can log in\n- user sees dashboard\n\n"
            "Notes here"
        )

        assert extract_acceptance_criteria(text) == '- user can log in\n- user sees dashboard'

    def test_acceptance_criteria_stops_at_capitalized_line(self):
        text = "Acceptance Criteria: must validate email\nOther section starts here"

        assert extract_acceptance_criteria(text) == 'must validate email'

    def test_acceptance_criteria_label_is_case_insensitive(self):
        assert extract_acceptance_criteria("acceptance criteria: works offline") == 'works offline'

    def test_ac_label(self):
        text = "Scope fix\n\nAC: form shows error on empty email\n\nMore"

        assert extract_acceptance_criteria(text) == 'form shows error on empty email'

    def test_given_paragraph(self):
        text = (
            "Story text\n\n"
            "Given a logged in user\nwhen they click logout\nthen the session ends\n\n"
            "Extra"
        )

        assert extract_acceptance_criteria(text) == (
            'Given a logged in user\nwhen they click logout\nthen the session ends'
        )

    def test_no_pattern_returns_empty_string(self):
        """Test that descriptions without any known pattern yield an empty string"""
        assert extract_acceptance_criteria("Fix the backend cache eviction") == ''
        assert extract_acceptance_criteria('') == ''

    def test_label_order_prefers_acceptance_criteria(self):
        text = "AC: second\n\nAcceptance Criteria: first"

        assert extract_acceptance_criteria(text) == 'first'


class TestNormalize:

    @pytest.fixture
    def payload(self):
        return {
            'key': 'QA-42',
            'fields': {
                'summary': 'Login with SSO',
                'description': {
                    'type': 'doc',
                    'version': 1,
                    'content': [
                        adf_paragraph('Users sign in with SSO.'),
                        adf_paragraph('\n\nAcceptance Criteria: redirect to IdP')
                    ]
                },
                'priority': {'name': 'High'},
                'status': {'name': 'In Progress'},
                'assignee': {'displayName': 'Sam Lee'},
                'labels': ['auth', 'sso', 'auth']
            }
        }

    def test_normalize_full_payload(self, payload):
        ticket = normalize(payload)

        assert ticket.key == 'QA-42'
        assert ticket.summary == 'Login with SSO'
        assert ticket.description == 'Users sign in with SSO.\n\nAcceptance Criteria: redirect to IdP'
        assert ticket.priority == 'High'
        assert ticket.status == 'In Progress'
        assert ticket.assignee == 'Sam Lee'
        assert ticket.labels == ['auth', 'sso']
        assert ticket.acceptance_criteria == 'redirect to IdP'

    def test_custom_field_wins_over_description(self, payload):
        payload['fields']['customfield_10014'] = 'Exactly as written\n\nin the field'

        ticket = normalize(payload)

        assert ticket.acceptance_criteria == 'Exactly as written\n\nin the field'

    def test_configurable_custom_field(self, payload):
        payload['fields']['customfield_20000'] = 'From another slot'

        ticket = normalize(payload, acceptance_criteria_field='customfield_20000')

        assert ticket.acceptance_criteria == 'From another slot'

    def test_empty_custom_field_falls_back_to_extraction(self, payload):
        payload['fields']['customfield_10014'] = ''

        assert normalize(payload).acceptance_criteria == 'redirect to IdP'

    def test_missing_optional_fields_use_defaults(self):
        ticket = normalize({'key': 'QA-1', 'fields': {}})

        assert ticket.summary == ''
        assert ticket.description == ''
        assert ticket.priority == 'Medium'
        assert ticket.status == 'Unknown'
        assert ticket.assignee is None
        assert ticket.labels == []
        assert ticket.acceptance_criteria == ''

    def test_null_nested_fields_use_defaults(self):
        ticket = normalize({'key': 'QA-1', 'fields': {'priority': None, 'assignee': None, 'labels': None}})

        assert ticket.priority == 'Medium'
        assert ticket.assignee is None
        assert ticket.labels == []

    def test_missing_key_raises(self):
        with pytest.raises(MalformedTicket):
            normalize({'fields': {'summary': 'No key'}})

    def test_ticket_identifier_parts(self):
        ticket = normalize({'key': 'PAY-1234', 'fields': {}})

        assert ticket.project_key == 'PAY'
        assert ticket.number == 1234
