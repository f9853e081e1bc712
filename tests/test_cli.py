from fodge import main, momentum_FORM, parse_order

def test_generates_lowest_order(capsys):
    assert main(['2', '4']) == 0
    out = capsys.readouterr().out
    assert out.strip().endswith("Total diagrams: 1")

def test_order_options(capsys):
    assert main(['-O', 'NLO', '-N', '4']) == 0
    assert capsys.readouterr().out.strip().endswith("Total diagrams: 2")
    assert parse_order('nnlo') == 6
    assert parse_order('4') == 4

def test_invalid_arguments(capsys):
    assert main(['3', '4']) == 1
    assert "ERROR" in capsys.readouterr().err
    assert main(['2', '5']) == 1
    assert main(['2']) == 1
    assert main(['2', '4', '-O', '2']) == 1
    assert main(['2', '6', '-i', '2,3']) == 1
    assert main(['2', '6', '-i', '6', '-x', '6']) == 1

def test_flavour_split_filter(capsys):
    assert main(['4', '6', '-x', '6']) == 0
    excluded = capsys.readouterr().out
    assert main(['4', '6', '-i', '6']) == 0
    included = capsys.readouterr().out
    assert main(['4', '6']) == 0
    total = capsys.readouterr().out

    count = lambda out: int(out.strip().split()[-1])
    assert count(excluded) + count(included) == count(total)

def test_listings(capsys):
    assert main(['2', '6', '-l', '-L', '-r']) == 0
    out = capsys.readouterr().out
    assert "Generated diagrams:" in out
    assert "[2] O(p^2) 6-point diagram, flavour split [6], symmetry factor 2, 3 distinct labellings:" in out
    assert "gon 0:" in out
    assert "flavour split" in out
    assert out.strip().endswith("Total diagrams: 2")

def test_form_output(tmp_path, capsys):
    assert main(['2', '6', '-f', '-o', str(tmp_path), '-n', 'test']) == 0
    form = (tmp_path / 'test_M6p2.hf').read_text()
    assert '#define NDIAGRAMS "2"' in form
    assert '#define D1SYM "6"' in form
    assert '#define D2SYM "2"' in form
    assert '#define D2NLABELS "3"' in form
    assert 'L D1 =' in form
    assert 'V2x6(p1, p2, p3, p4, p5, p6)' in form
    assert 'prop(p1 + p2 + p3)' in form

def test_momentum_conservation():
    assert momentum_FORM(0b0011, 4) == 'p1 + p2'
    assert momentum_FORM(0b1110, 4) == '-p1'
    assert momentum_FORM(0b1100, 4) == '-p1 - p2'
