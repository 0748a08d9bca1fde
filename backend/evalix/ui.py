UI_HTML = """
<!DOCTYPE html>
<html lang="es">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Evalix - Registro de notas</title>
    <style>
      body { font-family: Arial, sans-serif; margin: 24px; }
      table { border-collapse: collapse; margin-top: 16px; }
      td, th { border: 1px solid #ddd; padding: 4px 6px; }
      input { width: 110px; }
      input[type=number] { width: 60px; }
      .pass { background: #2e7d32; color: #fff; padding: 2px 6px; border-radius: 4px; }
      .fail { background: #c62828; color: #fff; padding: 2px 6px; border-radius: 4px; }
      pre { background: #f6f6f6; padding: 12px; border-radius: 6px; }
    </style>
  </head>
  <body>
    <h1>Evalix - Registro de notas</h1>
    <label>Año <input id="year" type="number" value="2025" /></label>
    <label>Período <input id="period" type="number" value="1" /></label>
    <button onclick="loadSheet()">Cargar</button>
    <button onclick="addRow()">Agregar fila</button>
    <button onclick="saveSheet()">Guardar</button>
    <button onclick="clearRows()">Limpiar</button>

    <table>
      <thead>
        <tr>
          <th>#</th><th>ID</th><th>Documento</th><th>Nombre</th><th>Asignatura</th>
          <th>N1</th><th>N2</th><th>N3</th><th>N4</th><th>Promedio</th><th></th>
        </tr>
      </thead>
      <tbody id="rows"></tbody>
    </table>
    <pre id="status"></pre>

    <script>
      const TEXT_KEYS = ['studentId', 'documentNumber', 'name', 'subject'];
      const GRADE_KEYS = ['n1', 'n2', 'n3', 'n4'];
      let sheet = null;
      let loadedPath = null;

      function sheetPath() {
        const year = document.getElementById('year').value;
        const period = document.getElementById('period').value;
        return `/sheets/${year}/${period}`;
      }

      function showStatus(data) {
        document.getElementById('status').textContent = JSON.stringify(data, null, 2);
      }

      function average(tr) {
        const total = GRADE_KEYS
          .map(k => parseFloat(tr.querySelector(`[data-k="${k}"]`).value || 0) || 0)
          .reduce((a, b) => a + b, 0);
        const avg = total / GRADE_KEYS.length;
        const badge = tr.querySelector('.avg');
        badge.textContent = avg.toFixed(2);
        badge.className = `avg ${avg >= 3 ? 'pass' : 'fail'}`;
        return avg;
      }

      function renumber() {
        document.querySelectorAll('#rows tr').forEach((tr, i) => tr.children[0].textContent = i + 1);
      }

      function addRow(row = {}) {
        const tr = document.createElement('tr');
        tr.appendChild(document.createElement('td'));
        [...TEXT_KEYS, ...GRADE_KEYS].forEach(k => {
          const input = document.createElement('input');
          input.dataset.k = k;
          if (GRADE_KEYS.includes(k)) {
            Object.assign(input, { type: 'number', min: '0', max: '5', step: '0.1' });
          }
          input.value = row[k] ?? '';
          const td = document.createElement('td');
          td.appendChild(input);
          tr.appendChild(td);
        });
        const avgCell = document.createElement('td');
        const badge = document.createElement('span');
        badge.className = 'avg';
        badge.textContent = '0.00';
        avgCell.appendChild(badge);
        const removeCell = document.createElement('td');
        const removeBtn = document.createElement('button');
        removeBtn.className = 'remove';
        removeBtn.textContent = 'Eliminar';
        removeCell.appendChild(removeBtn);
        tr.append(avgCell, removeCell);
        document.getElementById('rows').appendChild(tr);
        average(tr);
        renumber();
      }

      function collectRows() {
        return Array.from(document.querySelectorAll('#rows tr')).map(tr => {
          const row = {};
          tr.querySelectorAll('input').forEach(input => row[input.dataset.k] = input.value.trim());
          return row;
        });
      }

      async function loadSheet() {
        const res = await fetch(sheetPath());
        const data = await res.json();
        if (!res.ok) return showStatus(data);
        sheet = data;
        loadedPath = sheetPath();
        document.getElementById('rows').innerHTML = '';
        (data.rows || []).forEach(row => addRow(row));
        showStatus(data.summary);
      }

      function resetSheet() {
        sheet = null;
        loadedPath = null;
        document.getElementById('rows').innerHTML = '';
      }

      async function saveSheet() {
        if (!sheet || loadedPath !== sheetPath()) {
          return showStatus({ detail: 'Carga el período antes de guardar.' });
        }
        const body = {
          nextAutoId: sheet.nextAutoId,
          autoIdEnabled: sheet.autoIdEnabled,
          rows: collectRows(),
        };
        const res = await fetch(sheetPath(), {
          method: 'PUT',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify(body),
        });
        showStatus(await res.json());
      }

      function clearRows() {
        if (confirm('¿Deseas borrar todos los registros?')) {
          document.getElementById('rows').innerHTML = '';
        }
      }

      document.getElementById('year').addEventListener('change', resetSheet);
      document.getElementById('period').addEventListener('change', resetSheet);

      document.getElementById('rows').addEventListener('click', e => {
        if (e.target.classList.contains('remove')) {
          e.target.closest('tr').remove();
          renumber();
        }
      });

      document.getElementById('rows').addEventListener('input', e => {
        if (GRADE_KEYS.includes(e.target.dataset.k)) average(e.target.closest('tr'));
      });
    </script>
  </body>
</html>
"""
